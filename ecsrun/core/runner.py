import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from cement.utils.misc import minimal_logger

from ecsrun.core.models import (
    CloudWatchLogStreamManager,
    ContainerDefinition,
    InvokedTask,
    LogStreamIdentifier,
    OneOffTask,
    Service,
    TaskDefinition,
)
from ecsrun.core.waiters import TaskStoppedWaiter, WaiterHook

LOG = minimal_logger(__name__)


class TaskRunResult(object):
    """
    Everything we learned while running a one-off task: what we ran it from, the task
    as submitted and as finally stopped, and its log events.
    """

    def __init__(self) -> None:
        self.service: Optional[Service] = None
        self.task_definition: Optional[TaskDefinition] = None
        self.container: Optional[ContainerDefinition] = None
        self.log_options: Dict[str, str] = {}
        self.request: Optional[OneOffTask] = None
        self.task: Optional[InvokedTask] = None
        self.task_id: Optional[str] = None
        self.stopped_task: Optional[InvokedTask] = None
        self.log_stream: Optional[LogStreamIdentifier] = None
        self.events: List[Dict[str, Any]] = []

    @property
    def log_group(self) -> str:
        return self.log_options['awslogs-group']


class TaskRunner(object):
    """
    Run a one-off task in ``cluster`` using the configuration of the ECS service
    ``service_name``, wait for it to stop and fetch its logs.

    The steps are, in order:

        1. :py:meth:`resolve_service`
        2. :py:meth:`resolve_task_definition`
        3. :py:meth:`select_container`
        4. :py:meth:`launch`
        5. :py:meth:`wait`
        6. :py:meth:`fetch_logs`

    :py:meth:`run` does all of them.  Every step raises on failure; nothing is retried.
    Configuration problems (no task definition, no container, missing ``awslogs``
    options) are all found before we submit the task.
    """

    def __init__(
        self,
        cluster: str,
        service_name: str,
        command: Union[str, Sequence[str]] = None,
        container_name: str = None,
        started_by: str = None,
        poll_interval: float = TaskStoppedWaiter.DEFAULT_DELAY,
        max_attempts: Optional[int] = None,
        all_pages: bool = False,
        cancel: Optional[threading.Event] = None,
        waiter_hooks: Sequence[WaiterHook] = None
    ) -> None:
        if not cluster:
            raise ValueError('cluster must be a non-empty string')
        if not service_name:
            raise ValueError('service_name must be a non-empty string')
        if max_attempts is not None and max_attempts < 1:
            raise ValueError('max_attempts must be at least 1, or None to wait forever')
        self.cluster = cluster
        self.service_name = service_name
        self.command = command
        self.container_name = container_name
        self.started_by = started_by
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.all_pages = all_pages
        self.cancel = cancel
        self.waiter_hooks = list(waiter_hooks) if waiter_hooks else []

    def resolve_service(self) -> Service:
        LOG.debug('describing service %s in cluster %s' % (self.service_name, self.cluster))
        return Service.objects.get('{}:{}'.format(self.cluster, self.service_name))

    def resolve_task_definition(self, service: Service) -> TaskDefinition:
        LOG.debug('describing task definition %s' % service.data.get('taskDefinition', None))
        return service.task_definition

    def select_container(self, task_definition: TaskDefinition) -> Tuple[ContainerDefinition, Dict[str, str]]:
        """
        Pick our container and validate its log configuration.

        Returns:
            The container and its ``awslogs`` options.
        """
        container = task_definition.select_container(self.container_name)
        return container, container.log_options()

    def build_request(self, service: Service, container: ContainerDefinition) -> OneOffTask:
        return OneOffTask(service, container, command=self.command, started_by=self.started_by)

    def launch(self, request: OneOffTask) -> InvokedTask:
        LOG.debug('running task: %s' % request.data)
        return request.run()

    def wait(self, task: InvokedTask) -> InvokedTask:
        waiter = TaskStoppedWaiter(
            delay=self.poll_interval,
            max_attempts=self.max_attempts,
            cancel=self.cancel,
            hooks=self.waiter_hooks
        )
        return waiter.wait(self.cluster, task)

    def log_stream_for(
        self,
        log_options: Dict[str, str],
        container: ContainerDefinition,
        task_id: str
    ) -> LogStreamIdentifier:
        return LogStreamIdentifier(log_options['awslogs-stream-prefix'], container.name, task_id)

    def fetch_logs(self, log_options: Dict[str, str], stream: LogStreamIdentifier) -> List[Dict[str, Any]]:
        manager = CloudWatchLogStreamManager(region_name=log_options['awslogs-region'])
        LOG.debug('fetching log events for %s:%s' % (log_options['awslogs-group'], stream))
        return manager.get_events(
            '{}:{}'.format(log_options['awslogs-group'], stream),
            all_pages=self.all_pages
        )

    def run(
        self,
        before_launch: Callable[[TaskRunResult], None] = None,
        after_launch: Callable[[TaskRunResult], None] = None,
        after_stop: Callable[[TaskRunResult], None] = None
    ) -> TaskRunResult:
        """
        Do all the steps.  The optional callbacks are called with the partially filled
        in :py:class:`TaskRunResult` just before we submit the task, just after ECS
        accepts it, and once it has stopped.
        """
        result = TaskRunResult()
        result.service = self.resolve_service()
        result.task_definition = self.resolve_task_definition(result.service)
        result.container, result.log_options = self.select_container(result.task_definition)
        result.request = self.build_request(result.service, result.container)
        if before_launch:
            before_launch(result)
        result.task = self.launch(result.request)
        # Extract the id once; both the log stream name and anything we print use this value
        result.task_id = result.task.task_id
        result.log_stream = self.log_stream_for(result.log_options, result.container, result.task_id)
        if after_launch:
            after_launch(result)
        result.stopped_task = self.wait(result.task)
        if after_stop:
            after_stop(result)
        result.events = self.fetch_logs(result.log_options, result.log_stream)
        return result

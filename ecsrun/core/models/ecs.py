from copy import deepcopy
import datetime
import shlex
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from botocore.exceptions import BotoCoreError, ClientError

from ecsrun.exceptions import UnexpectedEmptyResult

from .abstract import LazyAttributeMixin, Manager, Model, get_error_code


__all__ = [
    'ContainerDefinition',
    'InvokedTask',
    'InvokedTaskManager',
    'OneOffTask',
    'OneOffTaskManager',
    'Service',
    'ServiceManager',
    'TaskDefinition',
    'TaskDefinitionManager',
]


# ----------------------------------------
# Managers
# ----------------------------------------

class ServiceManager(Manager):

    service: str = 'ecs'

    def __get_service_and_cluster_from_pk(self, pk: str) -> Tuple[str, str]:
        # The cluster may be an ARN; service names never contain ":"
        cluster, service = pk.rsplit(':', 1)
        return service, cluster

    def get(self, pk: str, **_) -> "Service":
        """
        :param pk str: a string like "{cluster_name}:{service_name}".  The cluster may also
            be given as a cluster ARN.
        """
        service, cluster = self.__get_service_and_cluster_from_pk(pk)
        try:
            response = self.client.describe_services(cluster=cluster, services=[service])
        except (ClientError, BotoCoreError) as e:
            if get_error_code(e) == 'ClusterNotFoundException':
                raise Service.DoesNotExist('No cluster with name "{}" exists in AWS'.format(cluster)) from e
            raise self.upstream_error(
                e, 'Could not describe service "{}" in cluster "{}"'.format(service, cluster)
            ) from e
        if response['services'] and response['services'][0]['status'] != 'INACTIVE':
            data = response['services'][0]
        else:
            raise Service.DoesNotExist(
                'No service named "{}" in cluster "{}" exists in AWS'.format(service, cluster)
            )
        # Remember the cluster name the way we were asked for it; we will pass it
        # verbatim to run_task and describe_tasks
        data['cluster'] = cluster
        return Service(data)


class TaskDefinitionManager(Manager):

    service: str = 'ecs'

    def get(self, pk: str, **_) -> "TaskDefinition":
        """
        :param pk str: a task definition ARN, "{family}:{revision}" or "{family}"
        """
        try:
            response = self.client.describe_task_definition(taskDefinition=pk)
        except (ClientError, BotoCoreError) as e:
            if get_error_code(e) == 'ClientException':
                raise TaskDefinition.DoesNotExist(f'No task definition matching "{pk}" exists in AWS') from e
            raise self.upstream_error(e, f'Could not describe task definition "{pk}"') from e
        data = response['taskDefinition']
        containers = [ContainerDefinition(d) for d in data.pop('containerDefinitions', [])]
        return TaskDefinition(data, containers=containers)


class OneOffTaskManager(Manager):

    service: str = 'ecs'

    def run(self, obj: "OneOffTask") -> "InvokedTask":
        """
        Submit ``obj`` with ``run_task`` and return the task ECS started for it.

        Raises:
            UnexpectedEmptyResult: ECS accepted the request but started no tasks
            UpstreamAPIError: the ``run_task`` call itself failed
        """
        try:
            response = self.client.run_task(**obj.render())
        except (ClientError, BotoCoreError) as e:
            raise self.upstream_error(
                e, f'Could not run a task for {obj.service}'
            ) from e
        if not response.get('tasks'):
            reasons = [
                '{}: {}'.format(f.get('arn', 'unknown'), f.get('reason', 'unknown'))
                for f in response.get('failures', [])
            ]
            msg = f'run_task for {obj.service} started no tasks'
            if reasons:
                msg += ' ({})'.format('; '.join(reasons))
            raise UnexpectedEmptyResult(msg)
        return InvokedTask(response['tasks'][0])


class InvokedTaskManager(Manager):
    """
    Invoked tasks are tasks that either are currently running in ECS, or have
    run and are now stopped.
    """

    service: str = 'ecs'

    def __get_cluster_and_task_arn_from_pk(self, pk: str) -> Tuple[str, str]:
        # Either half may be an ARN
        cluster, sep, task = pk.partition(':arn:')
        if sep:
            return cluster, 'arn:' + task
        cluster, task = pk.rsplit(':', 1)
        return cluster, task

    def get(self, pk: str, **_) -> "InvokedTask":
        """
        :param pk str: a string like '{cluster}:{task_arn}', where cluster is a cluster name or ARN
        """
        cluster, task_arn = self.__get_cluster_and_task_arn_from_pk(pk)
        try:
            response = self.client.describe_tasks(cluster=cluster, tasks=[task_arn])
        except (ClientError, BotoCoreError) as e:
            raise self.upstream_error(
                e, f'Could not describe task "{task_arn}" in cluster "{cluster}"'
            ) from e
        if not response['tasks']:
            raise InvokedTask.DoesNotExist(f'No task exists with arn "{task_arn}" in cluster "{cluster}"')
        return InvokedTask(response['tasks'][0])


# ----------------------------------------
# Models
# ----------------------------------------

class ContainerDefinition(LazyAttributeMixin):

    REQUIRED_LOG_OPTIONS: Sequence[str] = (
        'awslogs-group',
        'awslogs-region',
        'awslogs-stream-prefix',
    )

    class ImproperlyConfigured(Model.ImproperlyConfigured):
        pass

    def __init__(self, data: Dict[str, Any]):
        super().__init__()
        self.data: Dict[str, Any] = data

    @property
    def pk(self) -> str:
        return self.name

    @property
    def name(self) -> str:
        return self.data.get('name', None)

    def log_options(self) -> Dict[str, str]:
        """
        Return the ``awslogs`` options for this container.  We need all of
        ``awslogs-group``, ``awslogs-region`` and ``awslogs-stream-prefix`` to be able
        to find the log stream for a task we ran.

        Raises:
            ContainerDefinition.ImproperlyConfigured: the container has no log
                configuration, or is missing one of the required options
        """
        options = self.data.get('logConfiguration', {}).get('options', None)
        if not options:
            raise self.ImproperlyConfigured(
                f'ContainerDefinition(pk="{self.pk}") has no log configuration options'
            )
        missing = [key for key in self.REQUIRED_LOG_OPTIONS if not options.get(key)]
        if missing:
            raise self.ImproperlyConfigured(
                'ContainerDefinition(pk="{}") log configuration is missing: {}'.format(
                    self.pk, ', '.join(missing)
                )
            )
        return dict(options)


class TaskDefinition(Model):
    """
    An ECS Task Definition.  The container definitions from ``describe_task_definition`` are
    moved out of ``.data`` into ``.containers``, in the order ECS returned them.
    """

    objects = TaskDefinitionManager()

    def __init__(self, data: Dict[str, Any], containers: List[ContainerDefinition] = None) -> None:
        super().__init__(data)
        self.containers: List[ContainerDefinition] = containers if containers else []

    @property
    def pk(self) -> str:
        return self.data.get('taskDefinitionArn', self.name)

    @property
    def name(self) -> str:
        return '{}:{}'.format(self.data['family'], self.data.get('revision', ''))

    def select_container(self, name: str = None) -> ContainerDefinition:
        """
        Pick the container whose command we will override and whose logs we will fetch.
        With no ``name``, that is the first container in declaration order.

        Raises:
            TaskDefinition.ImproperlyConfigured: there are no containers, or none named ``name``
        """
        if not self.containers:
            raise self.ImproperlyConfigured(f'{self} has no containers to run')
        if name is None:
            return self.containers[0]
        for container in self.containers:
            if container.name == name:
                return container
        raise self.ImproperlyConfigured(
            '{} has no container named "{}".  Available containers: {}'.format(
                self, name, ', '.join(c.name for c in self.containers)
            )
        )


class Service(Model):

    #: The service settings we copy, unchanged, into our ``run_task`` request
    RUN_TASK_KEYS: Sequence[str] = (
        'launchType',
        'networkConfiguration',
        'placementConstraints',
        'placementStrategy',
        'platformVersion',
    )

    objects = ServiceManager()

    @property
    def pk(self) -> str:
        """
        Service names are only unique within a cluster, so to fully identify a service you have to
        give both cluster and service name.

        :returns: "{cluster_name}:{service_name}".
        """
        return ':'.join([self.cluster_name, self.name])

    @property
    def name(self) -> str:
        return self.data['serviceName']

    @property
    def cluster_name(self) -> str:
        return self.data['cluster']

    @property
    def task_definition_ref(self) -> str:
        """
        The task definition identifier exactly as the service references it.

        Raises:
            Service.ImproperlyConfigured: the service has no task definition
        """
        ref = self.data.get('taskDefinition', None)
        if not ref:
            raise self.ImproperlyConfigured(f'{self}: service has no task definition')
        return ref

    @property
    def task_definition(self) -> TaskDefinition:
        return self.get_cached('task_definition', TaskDefinition.objects.get, [self.task_definition_ref])

    @property
    def run_task_parameters(self) -> Dict[str, Any]:
        """
        The placement and network settings for our service, as ``run_task`` kwargs.  Settings
        the service does not have are left out rather than sent as ``None``.
        """
        return {key: deepcopy(self.data[key]) for key in self.RUN_TASK_KEYS if key in self.data}


class OneOffTask(Model):
    """
    A request to run a single copy of a service's task definition with the command of one
    container replaced.  ``.data`` is exactly what we pass to ``run_task``.
    """

    objects = OneOffTaskManager()

    DEFAULT_COMMAND: Sequence[str] = ('rake', '-t')
    DEFAULT_STARTED_BY: str = 'ecs-run'

    def __init__(
        self,
        service: Service,
        container: ContainerDefinition,
        command: Union[str, Sequence[str]] = None,
        started_by: str = None
    ) -> None:
        self.service = service
        self.container = container
        if not command:
            command = self.DEFAULT_COMMAND
        elif isinstance(command, str):
            command = shlex.split(command)
        self.command: List[str] = list(command)
        self.started_by: str = started_by if started_by else self.DEFAULT_STARTED_BY
        data: Dict[str, Any] = {
            'cluster': service.cluster_name,
            'count': 1,
        }
        data.update(service.run_task_parameters)
        data['taskDefinition'] = service.task_definition_ref
        data['overrides'] = {
            'containerOverrides': [
                {
                    'name': container.name,
                    'command': self.command,
                }
            ]
        }
        data['startedBy'] = self.started_by
        super().__init__(data)

    @property
    def pk(self) -> str:
        return '{}:{}'.format(self.data['cluster'], self.data['taskDefinition'])

    @property
    def name(self) -> str:
        return self.service.name

    def run(self) -> "InvokedTask":
        return self.objects.run(self)


class InvokedTask(Model):
    """
    A record of an ECS task, either still running or stopped.  Each call to
    ``InvokedTask.objects.get()`` returns a fresh snapshot.
    """

    objects = InvokedTaskManager()

    @property
    def pk(self) -> str:
        return f'{self.cluster_name}:{self.arn}'

    @property
    def name(self) -> str:
        return self.task_id

    @property
    def arn(self) -> str:
        return self.data['taskArn']

    @property
    def task_id(self) -> str:
        """
        The last path segment of our task ARN.  For
        ``arn:aws:ecs:us-west-2:123456789012:task/prod/abc123`` this is ``abc123``.
        """
        return self.get_cached('task_id', self.task_id_from_arn, [self.arn])

    @staticmethod
    def task_id_from_arn(arn: str) -> str:
        return arn.rsplit('/', 1)[-1]

    @property
    def cluster_name(self) -> str:
        return self.data['clusterArn'].split('/')[-1]

    @property
    def last_status(self) -> str:
        return self.data.get('lastStatus', 'UNKNOWN')

    @property
    def stopped_at(self) -> Optional[datetime.datetime]:
        return self.data.get('stoppedAt', None)

    @property
    def is_stopped(self) -> bool:
        return self.stopped_at is not None

    @property
    def stop_code(self) -> str:
        return self.data.get('stopCode', '')

    @property
    def stopped_reason(self) -> str:
        return self.data.get('stoppedReason', '')

    @property
    def exit_codes(self) -> Dict[str, Optional[int]]:
        return {c['name']: c.get('exitCode', None) for c in self.data.get('containers', [])}

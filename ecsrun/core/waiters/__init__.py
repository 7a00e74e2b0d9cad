import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence

from ecsrun.core.models import InvokedTask
from ecsrun.exceptions import PollCancelled, PollTimeout


logger = logging.getLogger(__name__)

WaiterHook = Callable[..., Any]


class TaskStoppedWaiter(object):
    """
    Wait for a single ECS task to stop by polling ``describe_tasks`` at a fixed interval.

    This works like a boto3 ``tasks_stopped`` waiter with hooks, except that:

        * a task counts as stopped as soon as ``stoppedAt`` is set, no matter what its
          ``lastStatus`` says
        * ``max_attempts`` may be ``None``, meaning wait forever
        * a ``threading.Event`` may be given to cancel the wait between polls

    Hooks are callables with this prototype::

        waiter_hook(state, task, num_attempts, **kwargs)

    Where:

    args:
        * 'state': one of 'waiting', 'success', 'timeout' or 'cancelled'
        * 'task': the :py:class:`InvokedTask` snapshot from the last poll, or ``None`` if
          we were cancelled before the first poll
        * 'num_attempts': the current iteration number

    kwargs:

        * 'name': the name of the waiter
        * 'cluster': the cluster name
        * 'tasks': a list with our task ARN in it
        * 'Delay': the sleep amount in seconds
        * 'MaxAttempts': how many iterations we'll perform before timing out, or ``None``
    """

    name = 'task_stopped'
    DEFAULT_DELAY: float = 0.5

    def __init__(
        self,
        delay: float = DEFAULT_DELAY,
        max_attempts: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
        hooks: Sequence[WaiterHook] = None
    ) -> None:
        if max_attempts is not None and max_attempts < 1:
            raise ValueError('max_attempts must be at least 1, or None to wait forever')
        self.delay = delay
        self.max_attempts = max_attempts
        self.cancel = cancel
        self.hooks = list(hooks) if hooks else []

    def _run_hooks(self, state: str, task: Optional[InvokedTask], num_attempts: int, **kwargs) -> None:
        for hook in self.hooks:
            hook(state, task, num_attempts, **kwargs)

    def wait(self, cluster: str, task: InvokedTask) -> InvokedTask:
        """
        Block until ``task`` stops and return the final snapshot of it.

        Raises:
            PollTimeout: we polled ``max_attempts`` times and the task had not stopped
            PollCancelled: ``cancel`` was set while we were waiting
            UpstreamAPIError: ``describe_tasks`` failed.  We don't retry.
        """
        hook_kwargs = {
            'name': self.name,
            'cluster': cluster,
            'tasks': [task.arn],
            'Delay': self.delay,
            'MaxAttempts': self.max_attempts,
        }
        pk = '{}:{}'.format(cluster, task.arn)
        snapshot: Optional[InvokedTask] = None
        num_attempts = 0
        while True:
            if self.cancel is not None and self.cancel.is_set():
                self._run_hooks('cancelled', snapshot, num_attempts, **hook_kwargs)
                raise PollCancelled(f'Stopped waiting for task {task.task_id} after {num_attempts} polls')
            snapshot = InvokedTask.objects.get(pk)
            num_attempts += 1
            if snapshot.is_stopped:
                logger.debug('Waiting complete, task %s has stopped.', task.task_id)
                self._run_hooks('success', snapshot, num_attempts, **hook_kwargs)
                return snapshot
            if self.max_attempts is not None and num_attempts >= self.max_attempts:
                self._run_hooks('timeout', snapshot, num_attempts, **hook_kwargs)
                raise PollTimeout(
                    'Task {} had not stopped after {} polls; last status was {}'.format(
                        task.task_id, num_attempts, snapshot.last_status
                    ),
                    num_attempts
                )
            self._run_hooks('waiting', snapshot, num_attempts, **hook_kwargs)
            time.sleep(self.delay)

from datetime import datetime
from typing import Optional

import click
from tzlocal import get_localzone

from .abstract import AbstractWaiterHook


def format_timestamp(value: Optional[datetime], default: str = '') -> str:
    if value is None:
        return default
    if value.tzinfo is not None:
        value = value.astimezone(get_localzone())
    return value.strftime('%Y-%m-%d %H:%M:%S')


class ECSTaskStatusHook(AbstractWaiterHook):
    """
    This is for our ``task_stopped`` waiter.  We poll every half second by default, so rather than print a table on
    every iteration we print a line only when the task's ``lastStatus`` changes, and one more when it stops.
    """

    def __init__(self, obj):
        super(ECSTaskStatusHook, self).__init__(obj)
        self.last_status = None

    def waiting(self, status, task, num_attempts, **kwargs):
        if task.last_status == self.last_status:
            return
        self.last_status = task.last_status
        click.secho('{}  {}  {}'.format(
            click.style(format_timestamp(datetime.now()), fg='cyan'),
            task.task_id,
            task.last_status
        ))

    def success(self, status, task, num_attempts, **kwargs):
        click.secho('{}  {}  {}  {}'.format(
            click.style(format_timestamp(task.stopped_at), fg='cyan'),
            task.task_id,
            task.last_status,
            task.stop_code
        ))

    def timeout(self, status, task, num_attempts, **kwargs):
        click.secho('\n\nTimed out waiting for the task to finish!\n\n', fg='red')
        click.secho(
            'NOTE: the task is still running in ECS; stop it from the AWS console if you need to.'
        )

    def cancelled(self, status, task, num_attempts, **kwargs):
        click.secho('\n\nStopped waiting for the task to finish.\n\n', fg='yellow')

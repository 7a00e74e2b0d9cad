from typing import Any, Dict, List, Optional

from cement import Controller
from cement.utils.version import get_version_banner
import click
from tabulate import tabulate

from ecsrun import get_version
from ecsrun.core.models import InvokedTask
from ecsrun.core.runner import TaskRunner, TaskRunResult
from ecsrun.core.waiters.hooks.ecs import ECSTaskStatusHook, format_timestamp
from ecsrun.exceptions import EcsRunAppError

from .utils import handle_run_exceptions


VERSION_BANNER = """
ecs-run-%s: Run a one-off AWS ECS task based on an existing service
---
%s
""" % (get_version(), get_version_banner())


class Base(Controller):
    class Meta:
        label = 'base'

        # text displayed at the top of --help output
        description = 'ecs-run: run a one-off task with the configuration of an existing ECS service'

        arguments = [
            ### add a version banner
            (['-v', '--version'], {'action' : 'version', 'version' : VERSION_BANNER}),
            (['cluster'], {'help': 'Name of cluster to run in'}),
            (['service'], {'help': 'Service to base task on'}),
            (
                ['--command'],
                {
                    'dest': 'command',
                    'nargs': '+',
                    'default': None,
                    'help': 'The command to run in the container.  Default: "rake -t"',
                }
            ),
            (
                ['--container'],
                {
                    'dest': 'container',
                    'default': None,
                    'help': 'Run the command in, and show logs for, this container instead of the first one',
                }
            ),
            (
                ['--started-by'],
                {
                    'dest': 'started_by',
                    'default': None,
                    'help': 'Value for the startedBy field of the task.  Default: "ecs-run"',
                }
            ),
            (
                ['--poll-interval'],
                {
                    'dest': 'poll_interval',
                    'type': float,
                    'default': None,
                    'help': 'Seconds to wait between checks on whether the task has stopped.  Default: 0.5',
                }
            ),
            (
                ['--max-attempts'],
                {
                    'dest': 'max_attempts',
                    'type': int,
                    'default': None,
                    'help': 'Give up waiting after checking this many times.  Default: wait forever',
                }
            ),
            (
                ['--all-pages'],
                {
                    'dest': 'all_pages',
                    'action': 'store_true',
                    'default': None,
                    'help': 'Fetch every page of log events, not just the first',
                }
            ),
            (
                ['--profile'],
                {
                    'dest': 'profile',
                    'default': None,
                    'help': 'The AWS profile to use',
                }
            ),
            (
                ['--region'],
                {
                    'dest': 'region',
                    'default': None,
                    'help': 'The AWS region for the ECS cluster',
                }
            ),
        ]

    def setting(self, name: str) -> Any:
        """
        Return the value of setting ``name``: the commandline flag if it was given,
        otherwise what's in the ``ecsrun:`` section of our config file.
        """
        value = getattr(self.app.pargs, name, None)
        if value is not None:
            return value
        return self.app.config.get('ecsrun', name)

    def get_runner(self) -> TaskRunner:
        max_attempts: Optional[int] = self.setting('max_attempts')
        try:
            return TaskRunner(
                self.app.pargs.cluster,
                self.app.pargs.service,
                command=self.setting('command'),
                container_name=self.setting('container'),
                started_by=self.setting('started_by'),
                poll_interval=float(self.setting('poll_interval')),
                max_attempts=int(max_attempts) if max_attempts is not None else None,
                all_pages=bool(self.setting('all_pages')),
                waiter_hooks=[ECSTaskStatusHook(self.app.pargs.service)]
            )
        except ValueError as e:
            raise EcsRunAppError(str(e)) from e

    # ------------------------
    # TaskRunner callbacks
    # ------------------------

    def before_launch(self, result: TaskRunResult) -> None:
        for _ in self.app.hook.run('pre_task_run', self.app, result.request):
            pass
        self.app.log.info('running {} in {}'.format(
            ' '.join(result.request.command),
            result.container.name
        ))

    def after_launch(self, result: TaskRunResult) -> None:
        self.app.print(click.style(f'Started task {result.task_id}', fg='green'))

    def after_stop(self, result: TaskRunResult) -> None:
        for _ in self.app.hook.run('post_task_stopped', self.app, result.stopped_task):
            pass
        self.app.print(click.style('Task finished, fetching logs', fg='green'))
        self.app.print(f'log_group: {result.log_group}')
        self.app.print(f'log_stream: {result.log_stream}')

    # ------------------------
    # Output
    # ------------------------

    def render_events(self, events: List[Dict[str, Any]]) -> str:
        if not events:
            return click.style('No log events found.', fg='yellow')
        lines = []
        for event in events:
            lines.append("{}  {}".format(
                click.style(event['timestamp'].strftime('%Y-%m-%d %H:%M:%S.%f'), fg='cyan'),
                event['message'].strip()
            ))
        return '\n'.join(lines)

    def render_task(self, task: InvokedTask) -> str:
        rows = [
            ['Task ARN', task.arn],
            ['Task Definition', task.data.get('taskDefinitionArn', '')],
            ['Status', task.last_status],
            ['Stop Code', task.stop_code],
            ['Stopped Reason', task.stopped_reason],
            ['Started By', task.data.get('startedBy', '')],
            ['Created', format_timestamp(task.data.get('createdAt', None))],
            ['Started', format_timestamp(task.data.get('startedAt', None), default='Not Started')],
            ['Stopped', format_timestamp(task.stopped_at)],
        ]
        for name, exit_code in task.exit_codes.items():
            rows.append([f'Exit Code ({name})', '' if exit_code is None else str(exit_code)])
        return tabulate(rows, tablefmt='plain')

    @handle_run_exceptions
    def _default(self) -> None:
        """
        Run the command in a one-off task based on our service, wait for it to finish and
        print its logs.
        """
        runner = self.get_runner()
        result = runner.run(
            before_launch=self.before_launch,
            after_launch=self.after_launch,
            after_stop=self.after_stop
        )
        self.app.print(self.render_events(result.events))
        self.app.print(click.style('\nTask:', fg='cyan'))
        self.app.print(self.render_task(result.stopped_task))

from copy import deepcopy
from datetime import datetime, timezone
import unittest
from unittest.mock import Mock

from cement import TestApp
import click
from testfixtures import Replacer

from ecsrun.controllers import Base
from ecsrun.core.models import InvokedTask
from ecsrun.exceptions import EcsRunAppError
from ecsrun.main import EcsRunApp


TASK_DATA = {
    'taskArn': 'arn:aws:ecs:us-east-1:123456789012:task/prod/abc123',
    'clusterArn': 'arn:aws:ecs:us-east-1:123456789012:cluster/prod',
    'taskDefinitionArn': 'arn:aws:ecs:us-east-1:123456789012:task-definition/worker:7',
    'lastStatus': 'STOPPED',
    'stopCode': 'EssentialContainerExited',
    'stoppedReason': 'Essential container in task exited',
    'startedBy': 'ecs-run',
    'stoppedAt': datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    'containers': [{'name': 'app', 'exitCode': 3}],
}


class FakePargs:

    cluster = 'prod'
    service = 'worker'
    command = None
    container = None
    started_by = None
    poll_interval = None
    max_attempts = None
    all_pages = None


class TestBase(unittest.TestCase):

    CONFIG = {
        'command': ['rake', '-t'],
        'container': None,
        'started_by': 'ecs-run',
        'poll_interval': 0.5,
        'max_attempts': None,
        'all_pages': False,
    }

    def setUp(self):
        self.controller = Base()
        self.controller.app = Mock()
        self.controller.app.pargs = FakePargs()
        self.controller.app.config.get.side_effect = lambda section, key: self.CONFIG[key]

    def test_setting_falls_back_to_config(self):
        self.assertEqual(self.controller.setting('command'), ['rake', '-t'])
        self.controller.app.config.get.assert_called_with('ecsrun', 'command')

    def test_flag_wins_over_config(self):
        self.controller.app.pargs.command = ['./manage.py', 'migrate']
        self.assertEqual(self.controller.setting('command'), ['./manage.py', 'migrate'])

    def test_get_runner(self):
        self.controller.app.pargs.max_attempts = 10
        runner = self.controller.get_runner()
        self.assertEqual(runner.cluster, 'prod')
        self.assertEqual(runner.service_name, 'worker')
        self.assertEqual(runner.command, ['rake', '-t'])
        self.assertEqual(runner.poll_interval, 0.5)
        self.assertEqual(runner.max_attempts, 10)
        self.assertFalse(runner.all_pages)
        self.assertEqual(len(runner.waiter_hooks), 1)

    def test_max_attempts_zero_is_rejected(self):
        self.controller.app.pargs.max_attempts = 0
        with self.assertRaises(EcsRunAppError):
            self.controller.get_runner()

    def test_render_task(self):
        output = click.unstyle(self.controller.render_task(InvokedTask(TASK_DATA)))
        self.assertIn('arn:aws:ecs:us-east-1:123456789012:task/prod/abc123', output)
        self.assertIn('EssentialContainerExited', output)
        self.assertIn('Exit Code (app)', output)

    def test_render_events(self):
        events = [
            {'timestamp': datetime(2024, 1, 1, 12, 0, 0), 'message': 'hello\n'},
            {'timestamp': datetime(2024, 1, 1, 12, 0, 1), 'message': 'world\n'},
        ]
        output = click.unstyle(self.controller.render_events(events))
        self.assertEqual(
            output.splitlines(),
            ['2024-01-01 12:00:00.000000  hello', '2024-01-01 12:00:01.000000  world']
        )

    def test_render_no_events(self):
        self.assertIn('No log events found', click.unstyle(self.controller.render_events([])))


class EcsRunTestApp(TestApp, EcsRunApp):

    class Meta:
        label = 'ecsrun'


class TestEcsRunApp(unittest.TestCase):

    SERVICE = {
        'serviceName': 'worker',
        'clusterArn': 'arn:aws:ecs:us-east-1:123456789012:cluster/prod',
        'status': 'ACTIVE',
        'launchType': 'EC2',
        'taskDefinition': 'worker:7',
    }

    TASK_DEFINITION = {
        'taskDefinitionArn': 'arn:aws:ecs:us-east-1:123456789012:task-definition/worker:7',
        'family': 'worker',
        'revision': 7,
        'containerDefinitions': [
            {
                'name': 'app',
                'logConfiguration': {
                    'logDriver': 'awslogs',
                    'options': {
                        'awslogs-group': '/ecs/worker',
                        'awslogs-region': 'us-east-1',
                        'awslogs-stream-prefix': 'ecslogs'
                    }
                }
            }
        ]
    }

    def setUp(self):
        self.ecs = Mock()
        self.logs = Mock()
        self.ecs.describe_services.return_value = {'services': [deepcopy(self.SERVICE)], 'failures': []}
        self.ecs.describe_task_definition.return_value = {'taskDefinition': deepcopy(self.TASK_DEFINITION)}
        self.ecs.run_task.return_value = {'tasks': [dict(TASK_DATA, lastStatus='PENDING', stoppedAt=None)]}
        self.ecs.describe_tasks.return_value = {'tasks': [deepcopy(TASK_DATA)]}
        self.logs.get_log_events.return_value = {
            'events': [{'timestamp': 1704110400000, 'message': 'rake aborted!\n'}],
            'nextForwardToken': 'f/1',
        }
        clients = {'ecs': self.ecs, 'logs': self.logs}
        session = Mock()
        session.client.side_effect = lambda service, **kwargs: clients[service]
        self.replacer = Replacer()
        self.replacer.replace('ecsrun.main.build_boto3_session', Mock())
        self.replacer.replace('ecsrun.core.models.abstract.get_boto3_session', lambda: session)
        self.replacer.replace('ecsrun.core.waiters.time.sleep', Mock())
        self.replacer.replace('ecsrun.core.waiters.hooks.ecs.click.secho', Mock())
        self.addCleanup(self.replacer.restore)

    def run_app(self, argv):
        output = []

        def capture(app, text):
            output.append(text)
            return text

        with EcsRunTestApp(argv=argv) as app:
            app.hook.register('post_render', capture)
            app.run()
        return app, click.unstyle(''.join(output)).splitlines()

    def test_run(self):
        app, lines = self.run_app(['prod', 'worker'])
        self.assertEqual(app.exit_code, 0)
        self.ecs.describe_services.assert_called_once_with(cluster='prod', services=['worker'])
        self.assertEqual(
            self.ecs.run_task.call_args[1]['overrides'],
            {'containerOverrides': [{'name': 'app', 'command': ['rake', '-t']}]}
        )
        self.assertEqual(lines[:4], [
            'Started task abc123',
            'Task finished, fetching logs',
            'log_group: /ecs/worker',
            'log_stream: ecslogs/app/abc123',
        ])
        self.assertTrue(lines[4].endswith('  rake aborted!'))
        self.assertIn('Task:', lines)
        self.assertTrue(any('EssentialContainerExited' in line for line in lines))
        self.assertTrue(any('Exit Code (app)' in line for line in lines))

    def test_flags(self):
        app, _ = self.run_app([
            'prod', 'worker', '--started-by', 'ops', '--all-pages', '--command', './manage.py', 'migrate'
        ])
        self.assertEqual(app.exit_code, 0)
        kwargs = self.ecs.run_task.call_args[1]
        self.assertEqual(kwargs['startedBy'], 'ops')
        self.assertEqual(kwargs['overrides']['containerOverrides'][0]['command'], ['./manage.py', 'migrate'])
        self.assertTrue(self.logs.get_log_events.call_args[1]['startFromHead'])

    def test_service_not_found(self):
        self.ecs.describe_services.return_value = {'services': [], 'failures': []}
        app, lines = self.run_app(['prod', 'worker'])
        self.assertEqual(app.exit_code, 1)
        self.assertEqual(lines, ['ERROR: No service named "worker" in cluster "prod" exists in AWS'])
        self.ecs.run_task.assert_not_called()

    def test_missing_log_configuration(self):
        data = deepcopy(self.TASK_DEFINITION)
        del data['containerDefinitions'][0]['logConfiguration']['options']['awslogs-region']
        self.ecs.describe_task_definition.return_value = {'taskDefinition': data}
        app, lines = self.run_app(['prod', 'worker'])
        self.assertEqual(app.exit_code, 1)
        self.assertTrue(lines[0].startswith('CONFIGURATION ERROR:'))
        self.assertIn('awslogs-region', lines[0])
        self.ecs.run_task.assert_not_called()

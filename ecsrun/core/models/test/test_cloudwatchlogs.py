from datetime import datetime
import unittest
from unittest.mock import Mock

from botocore.exceptions import ClientError
from testfixtures import Replacer

from ecsrun.core.models import CloudWatchLogStream, CloudWatchLogStreamManager, LogStreamIdentifier
from ecsrun.exceptions import UpstreamAPIError


def page(messages, token):
    return {
        'events': [
            {'timestamp': 1704110400000 + i, 'message': message, 'ingestionTime': 1704110401000}
            for i, message in enumerate(messages)
        ],
        'nextForwardToken': token,
        'nextBackwardToken': 'b/0',
    }


class TestLogStreamIdentifier(unittest.TestCase):

    def test_str(self):
        for prefix, container, task_id in [
            ('ecslogs', 'app', 'abc123'),
            ('my-prefix', 'web', '0f1e2d3c4b5a'),
            ('p', 'c', 't'),
        ]:
            self.assertEqual(
                str(LogStreamIdentifier(prefix, container, task_id)),
                f'{prefix}/{container}/{task_id}'
            )


class TestCloudWatchLogStreamManager_get_events(unittest.TestCase):

    def setUp(self):
        self.client = Mock()
        self.session = Mock()
        self.session.client.return_value = self.client
        self.replacer = Replacer()
        self.replacer.replace('ecsrun.core.models.abstract.get_boto3_session', lambda: self.session)
        self.addCleanup(self.replacer.restore)
        self.manager = CloudWatchLogStreamManager(region_name='us-east-1')

    def test_client_uses_log_region(self):
        self.client.get_log_events.return_value = page([], 'f/1')
        self.manager.get_events('/ecs/worker:ecslogs/app/abc123')
        self.session.client.assert_called_with('logs', region_name='us-east-1')

    def test_first_page_only(self):
        self.client.get_log_events.return_value = page(['one', 'two'], 'f/1')
        events = self.manager.get_events('/ecs/worker:ecslogs/app/abc123')
        self.client.get_log_events.assert_called_once_with(
            logGroupName='/ecs/worker',
            logStreamName='ecslogs/app/abc123'
        )
        self.assertEqual([e['message'] for e in events], ['one', 'two'])
        self.assertIsInstance(events[0]['timestamp'], datetime)
        self.assertEqual(events[0]['raw_timestamp'], 1704110400000)

    def test_all_pages(self):
        self.client.get_log_events.side_effect = [
            page(['one', 'two'], 'f/1'),
            page(['three'], 'f/2'),
            page([], 'f/2'),
        ]
        events = self.manager.get_events('/ecs/worker:ecslogs/app/abc123', all_pages=True)
        self.assertEqual([e['message'] for e in events], ['one', 'two', 'three'])
        calls = self.client.get_log_events.call_args_list
        self.assertEqual(len(calls), 3)
        self.assertTrue(calls[0][1]['startFromHead'])
        self.assertNotIn('nextToken', calls[0][1])
        self.assertEqual(calls[2][1]['nextToken'], 'f/2')

    def test_missing_stream_is_does_not_exist(self):
        self.client.get_log_events.side_effect = ClientError(
            {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'The specified log stream does not exist.'}},
            'GetLogEvents'
        )
        with self.assertRaises(CloudWatchLogStream.DoesNotExist) as cm:
            self.manager.get_events('/ecs/worker:ecslogs/app/abc123')
        self.assertIn('ecslogs/app/abc123', str(cm.exception))

    def test_api_error_is_wrapped(self):
        self.client.get_log_events.side_effect = ClientError(
            {'Error': {'Code': 'ServiceUnavailableException', 'Message': 'Try again'}},
            'GetLogEvents'
        )
        with self.assertRaises(UpstreamAPIError):
            self.manager.get_events('/ecs/worker:ecslogs/app/abc123')

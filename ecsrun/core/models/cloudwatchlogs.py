from datetime import datetime
from typing import Any, Dict, List, NamedTuple

from botocore.exceptions import BotoCoreError, ClientError

from .abstract import Manager, Model, get_error_code


class LogStreamIdentifier(NamedTuple):
    """
    The name of the CloudWatch log stream the ``awslogs`` driver writes for a container in a
    task: ``{awslogs-stream-prefix}/{container name}/{task id}``.
    """

    prefix: str
    container_name: str
    task_id: str

    def __str__(self) -> str:
        return '{}/{}/{}'.format(self.prefix, self.container_name, self.task_id)


class CloudWatchLogStreamManager(Manager):

    service = 'logs'

    def __get_group_and_stream_from_pk(self, pk: str) -> List[str]:
        return pk.split(':', 1)

    def _get_log_events(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self.client.get_log_events(**kwargs)
        except (ClientError, BotoCoreError) as e:
            if get_error_code(e) == 'ResourceNotFoundException':
                raise CloudWatchLogStream.DoesNotExist(
                    'No log stream "{}" in log group "{}" exists in AWS'.format(
                        kwargs['logStreamName'], kwargs['logGroupName']
                    )
                ) from e
            raise self.upstream_error(
                e, 'Could not get log events for "{}:{}"'.format(kwargs['logGroupName'], kwargs['logStreamName'])
            ) from e

    def _convert(self, event: Dict[str, Any]) -> Dict[str, Any]:
        # Just convert our timetamp to something more useful
        event['raw_timestamp'] = event['timestamp']
        event['timestamp'] = datetime.fromtimestamp(event['timestamp'] / 1000.0)
        return event

    def get_events(self, pk: str, all_pages: bool = False) -> List[Dict[str, Any]]:
        """
        Get the log events for a log stream.

        By default this is one ``get_log_events`` call, and thus only the first page
        of results.  With ``all_pages=True`` we start at the head of the stream and follow
        ``nextForwardToken`` until CloudWatch hands us back the token we sent.

        :param pk str: a string like "{log group name}:{log stream name}"
        """
        group_name, stream_name = self.__get_group_and_stream_from_pk(pk)
        kwargs: Dict[str, Any] = {
            'logGroupName': group_name,
            'logStreamName': stream_name,
        }
        if not all_pages:
            response = self._get_log_events(kwargs)
            return [self._convert(event) for event in response['events']]
        kwargs['startFromHead'] = True
        events: List[Dict[str, Any]] = []
        while True:
            response = self._get_log_events(kwargs)
            events.extend(self._convert(event) for event in response['events'])
            token = response.get('nextForwardToken', None)
            if token is None or token == kwargs.get('nextToken', None):
                break
            kwargs['nextToken'] = token
        return events


class CloudWatchLogStream(Model):
    """
    A CloudWatch Logs log stream.  We only ever read events from streams through
    :py:class:`CloudWatchLogStreamManager`, so this exists to carry our ``DoesNotExist``.
    """
    pass

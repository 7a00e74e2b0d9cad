from typing import Optional


class ObjectDoesNotExist(Exception):
    """
    We tried to get a single object but it does not exist in AWS.
    """
    pass


class ObjectImproperlyConfigured(Exception):
    """
    An object we got from AWS is not configured in a way that lets us run a task from it.
    """
    pass


class MissingConfiguration(ObjectImproperlyConfigured):
    """
    A service or container definition lacks something we need: a task definition reference,
    a container, or one of the required ``awslogs`` options.  These are mistakes in the service
    definition, so retrying will not help.
    """
    pass


class OperationFailed(Exception):
    """
    We tried to do something we expected to succeed, but it failed.
    """
    pass


class UpstreamAPIError(OperationFailed):
    """
    A call to AWS failed at the transport or API level.  These may be transient.
    """

    retryable: bool = True

    def __init__(self, msg: str, code: Optional[str] = None):
        super().__init__(msg)
        self.code = code


class UnexpectedEmptyResult(OperationFailed):
    """
    An AWS call that should have returned at least one item returned none.
    """
    pass


class PollTimeout(OperationFailed):
    """
    We polled a task the maximum number of times and it still had not stopped.
    """

    def __init__(self, msg: str, num_attempts: int):
        super().__init__(msg)
        self.num_attempts = num_attempts


class PollCancelled(OperationFailed):
    """
    Someone asked us to stop waiting for a task before it stopped.
    """
    pass


class EcsRunAppError(Exception):
    """Generic errors."""
    pass

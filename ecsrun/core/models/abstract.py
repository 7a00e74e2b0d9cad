from copy import deepcopy
from typing import Callable, List, Any, Dict, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from ecsrun.core.aws import get_boto3_session
from ecsrun.exceptions import (
    MissingConfiguration,
    ObjectDoesNotExist,
    OperationFailed as BaseOperationFailed,
    UpstreamAPIError,
)


def get_error_code(exc: Union[ClientError, BotoCoreError]) -> Optional[str]:
    """
    Return the AWS error code (e.g. ``ClusterNotFoundException``) from a botocore
    exception, or ``None`` if it was a transport level error.
    """
    if isinstance(exc, ClientError):
        return exc.response.get('Error', {}).get('Code', 'Unknown')
    return None


class LazyAttributeMixin:

    def __init__(self) -> None:
        self.cache: Dict[str, Any] = {}
        super().__init__()

    def get_cached(self, key: str, populator: Callable, args: List[Any], kwargs: Dict[str, Any] = None) -> Any:
        kwargs = kwargs if kwargs else {}
        if key not in self.cache:
            self.cache[key] = populator(*args, **kwargs)
        return self.cache[key]


class Manager:

    service: str

    def __init__(self, region_name: str = None) -> None:
        self.region_name = region_name

    @property
    def client(self):
        if self.region_name:
            return get_boto3_session().client(self.service, region_name=self.region_name)
        return get_boto3_session().client(self.service)

    def get(self, pk: str, **_) -> "Model":
        raise NotImplementedError

    def upstream_error(self, exc: Union[ClientError, BotoCoreError], msg: str) -> UpstreamAPIError:
        """
        Wrap a botocore exception in an :py:class:`UpstreamAPIError`.  The caller should
        ``raise self.upstream_error(e, msg) from e`` so the original traceback survives.

        Args:
            exc: the exception botocore raised
            msg: what we were trying to do, e.g. 'Could not describe service "foo"'
        """
        code = get_error_code(exc)
        return UpstreamAPIError(f'{msg}: {exc}', code=code)


class Model(LazyAttributeMixin):

    objects: Manager

    class DoesNotExist(ObjectDoesNotExist):
        """
        We tried to get a single object but it does not exist in AWS.
        """
        pass

    class ImproperlyConfigured(MissingConfiguration):
        """
        The object exists in AWS but is missing configuration we need.
        """
        pass

    class OperationFailed(BaseOperationFailed):
        """
        We did a call to AWS we expected to succeed, but it failed.
        """
        pass

    def __init__(self, data: Dict[str, Any]) -> None:
        super().__init__()
        self.data = data

    @property
    def pk(self) -> str:
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def arn(self) -> Optional[str]:
        raise NotImplementedError

    def render(self) -> Dict[str, Any]:
        return deepcopy(self.data)

    def __str__(self) -> str:
        return '{}(pk="{}")'.format(self.__class__.__name__, self.pk)

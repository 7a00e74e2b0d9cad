from typing import Dict, Any, Optional, cast

import boto3


boto3_session: Optional[boto3.session.Session] = None


class AWSSessionBuilder:

    class NoSuchAWSProfile(Exception):
        """
        We raise this if the AWS profile we were asked to use does not exist in the
        user's ``~/.aws/config`` file.
        """
        pass

    def new(self, config: Dict[str, Any] = None) -> boto3.session.Session:
        """
        Build and return a properly configured boto3 ``Session`` object.

        Args:
            config: the ``aws:`` section of our config file, with any ``--profile`` and
                ``--region`` flags already merged in.  Recognized keys are ``access_key``,
                ``secret_key``, ``profile`` and ``region``.

        Raises:
            AWSSessionBuilder.NoSuchAWSProfile: the requested profile is not in
                ``~/.aws/config``

        Returns:
            A configured boto3 ``Session`` object.
        """
        config = {k: v for k, v in (config or {}).items() if v}
        if not config:
            # Leave it up to the normal AWS credentials and region resolution
            return boto3.session.Session()
        # An API access key pair has priority over a profile
        if 'access_key' in config:
            return boto3.session.Session(
                aws_access_key_id=config.get('access_key'),
                aws_secret_access_key=config.get('secret_key'),
                region_name=config.get('region', None)
            )
        if 'profile' in config:
            profile = config['profile']
            if profile not in boto3.session.Session().available_profiles:
                raise self.NoSuchAWSProfile("AWS profile '{}' does not exist in your ~/.aws/config".format(profile))
            return boto3.session.Session(
                profile_name=profile,
                region_name=config.get('region', None)
            )
        # Neither credentials nor a profile, so possibly just a region.
        return boto3.session.Session(region_name=config.get('region', None))


def build_boto3_session(
    config: Dict[str, Any] = None,
    boto3_session_override: boto3.session.Session = None
) -> None:
    """
    Build a boto3 session object from our config file, commandline flags and our
    environment.  Save it in the global variable :py:data:`boto3_session` so we
    don't have to keep constructing it.

    Args:
        config: the ``aws:`` settings to use
        boto3_session_override: if not None, use this boto3 session object instead of
            building a new one
    """
    global boto3_session  # pylint: disable=global-statement
    if boto3_session_override:
        boto3_session = boto3_session_override
    else:
        boto3_session = AWSSessionBuilder().new(config)


def get_boto3_session(
    boto3_session_override: boto3.session.Session = None
) -> boto3.session.Session:
    """
    Get the boto3 session object that we've built, or the one that was passed in
    by ``boto3_session_override``.  This is the function that all the rest of
    our code should use to get the boto3 session object.

    If :py:func:`build_boto3_session` has not been called yet, fall back to the
    ``boto3`` module itself, which uses the default session.

    Args:
        boto3_session_override: if not None, use this boto3 session object instead of
            the one we built.

    Returns:
        The boto3 session object.
    """
    if boto3_session_override:
        return boto3_session_override
    if boto3_session:
        return boto3_session
    return cast(boto3.session.Session, boto3)

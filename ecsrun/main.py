from cement import App, init_defaults
from cement.core.exc import CaughtSignal

from .controllers import Base
from .core.aws import AWSSessionBuilder, build_boto3_session
from .core.models import OneOffTask
from .core.waiters import TaskStoppedWaiter
from .exceptions import EcsRunAppError

# configuration defaults
CONFIG = init_defaults('ecsrun', 'aws')
CONFIG['ecsrun']['command'] = list(OneOffTask.DEFAULT_COMMAND)
CONFIG['ecsrun']['container'] = None
CONFIG['ecsrun']['started_by'] = OneOffTask.DEFAULT_STARTED_BY
CONFIG['ecsrun']['poll_interval'] = TaskStoppedWaiter.DEFAULT_DELAY
CONFIG['ecsrun']['max_attempts'] = None
CONFIG['ecsrun']['all_pages'] = False
CONFIG['aws']['profile'] = None
CONFIG['aws']['region'] = None
META = init_defaults('log.colorlog')
META['log.colorlog']['log_level_argument'] = ['-l', '--level']


def post_arg_parse_build_boto3_session(app: "EcsRunApp") -> None:
    """
    After parsing arguments but before doing any other actions, build a properly
    configured ``boto3.session.Session`` object for us to use in our AWS work.

    ``--profile`` and ``--region`` win over the ``aws:`` section of our config file.

    Args:
        app: our EcsRunApp object
    """
    app.log.debug('building boto3 session')
    aws_config = dict(app.config.get_section_dict('aws'))
    for key in ['profile', 'region']:
        value = getattr(app.pargs, key, None)
        if value:
            aws_config[key] = value
    build_boto3_session(aws_config)

# ------------------
# The cement app
# ------------------

class EcsRunApp(App):
    """ecs-run primary application."""

    class Meta:
        label = 'ecsrun'

        config_defaults = CONFIG
        meta_defaults = META

        # call sys.exit() on close
        exit_on_close = True

        # load additional framework extensions
        extensions = [
            'yaml',
            'colorlog',
            'print',
        ]

        # configuration handler
        config_handler = 'yaml'

        # configuration file suffix
        config_file_suffix = '.yml'

        # handlers
        log_handler = 'colorlog'

        # register handlers
        handlers = [
            Base,
        ]

        # define hooks
        define_hooks = [
            'pre_task_run',         # hook(app: App, obj: OneOffTask)
            'post_task_stopped',    # hook(app: App, obj: InvokedTask)
        ]

        # register hooks
        hooks = [
            ('post_argument_parsing', post_arg_parse_build_boto3_session)
        ]


# ==========================================
# entrypoint
# ==========================================


def main():
    with EcsRunApp() as app:
        try:
            app.run()

        except AssertionError as e:
            print('AssertionError > %s' % e.args[0])
            app.exit_code = 1

            if app.debug is True:
                import traceback
                traceback.print_exc()

        except (AWSSessionBuilder.NoSuchAWSProfile, EcsRunAppError) as e:
            print('EcsRunAppError > %s' % e.args[0])
            app.exit_code = 1

            if app.debug is True:
                import traceback
                traceback.print_exc()

        except CaughtSignal as e:
            # Default Cement signals are SIGINT and SIGTERM, exit 0 (non-error)
            print('\n%s' % e)
            app.exit_code = 0


if __name__ == '__main__':
    main()

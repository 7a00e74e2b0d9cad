from collections.abc import Callable
from functools import wraps

import click

from ecsrun.exceptions import (
    MissingConfiguration,
    ObjectDoesNotExist,
    OperationFailed,
    UpstreamAPIError,
)

# ========================
# Decorators
# ========================

def handle_run_exceptions(func: Callable) -> Callable:
    """
    This decorator catches all the kinds of exceptions we expect to see in normal
    operation, prints them and sets a non-zero exit code, while letting others
    display their stack traces normally.

    We keep configuration errors, which the operator has to fix in the service
    or task definition, apart from AWS errors, which might go away on their own.

    We use this decorator to wrap cement command methods on
    :py:class:`cement.ext.ext_argparse.ArgparseController` subclasses.
    """

    @wraps(func)
    def inner(self, *args, **kwargs):
        try:
            obj = func(self, *args, **kwargs)
        except ObjectDoesNotExist as e:
            self.app.print(click.style(f"ERROR: {e!s}", fg="red"))
            self.app.exit_code = 1
        except MissingConfiguration as e:
            self.app.print(click.style(f"CONFIGURATION ERROR: {e!s}", fg="red"))
            self.app.exit_code = 1
        except UpstreamAPIError as e:
            self.app.print(click.style(f"AWS ERROR: {e!s}", fg="red"))
            self.app.print(click.style("This may be a transient problem; it is safe to try again.", fg="yellow"))
            self.app.exit_code = 1
        except OperationFailed as e:
            self.app.print(click.style(f"ERROR: {e!s}", fg="red"))
            self.app.exit_code = 1
        else:
            return obj
    return inner

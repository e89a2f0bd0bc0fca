"""Error boundary handling for CLI commands.

This module provides a decorator to catch specstack's domain exceptions at CLI
entry points and display clean error messages without stack traces.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import click

from specstack.cli.output import user_output
from specstack.core.errors import SpecStackError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def cli_error_boundary(func: F) -> F:
    """Decorator that catches domain errors and exits with their exit code.

    Catches:
        - SpecStackError: printed as a red "Error:" line, exit code from the error
        - PermissionError: exit code 1

    All other exceptions bubble up normally with full stack traces.

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SpecStackError as e:
            logger.debug("Command failed with %s", type(e).__name__, exc_info=True)
            user_output(click.style("Error: ", fg="red") + str(e))
            raise SystemExit(e.exit_code) from None
        except PermissionError as e:
            user_output(click.style("Error: ", fg="red") + str(e))
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]

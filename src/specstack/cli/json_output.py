"""JSON output utilities for CLI commands with machine-parseable output."""

import json
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from specstack.cli.output import machine_output
from specstack.core.errors import SpecStackError


class ErrorResponse(BaseModel):
    """Pydantic model for error JSON responses.

    Attributes:
        error: Error message
        error_type: Error class name (e.g., "CycleError")
        exit_code: Exit code for the process
    """

    model_config = ConfigDict(strict=True)

    error: str
    error_type: str
    exit_code: int = Field(default=1, ge=0, le=255)


def _serialize_for_json(obj: Any) -> Any:
    """Recursively serialize Path values in plain dict structures.

    For Pydantic models, use model.model_dump(mode='json') first.
    """
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, dict):
        return {key: _serialize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    return obj


def emit_json(data: dict[str, Any]) -> None:
    """Output JSON data to stdout for machine consumption.

    Args:
        data: Dictionary to serialize as JSON
    """
    serialized = _serialize_for_json(data)
    machine_output(json.dumps(serialized, indent=2))


def emit_model(model: BaseModel) -> None:
    emit_json(model.model_dump(mode="json", by_alias=True))


def emit_json_error(error: str, error_type: str, exit_code: int = 1) -> None:
    """Output error as JSON and exit.

    Raises:
        SystemExit: Always raises to terminate with specified exit code
    """
    error_response = ErrorResponse(
        error=error,
        error_type=error_type,
        exit_code=exit_code,
    )
    emit_json(error_response.model_dump(mode="json"))
    raise SystemExit(exit_code)


def json_error_boundary(func: Callable) -> Callable:
    """Decorator to emit domain errors as JSON when `--json` was passed.

    Inspects the `json_output` keyword argument. When it is true, a
    SpecStackError becomes an ErrorResponse on stdout with the error's exit
    code. Otherwise the exception propagates to cli_error_boundary.

    Example:
        @click.command()
        @click.option("--json", "json_output", is_flag=True)
        @cli_error_boundary
        @json_error_boundary
        def my_command(json_output: bool) -> None:
            ...
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SpecStackError as e:
            if kwargs.get("json_output", False):
                emit_json_error(str(e), type(e).__name__, exit_code=e.exit_code)
            raise

    return wrapper

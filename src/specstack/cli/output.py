"""Output utilities for CLI commands with clear intent.

user_output is for human-facing messages (stderr); machine_output is for
data meant to be piped or parsed (stdout).
"""

from io import StringIO

import click
from rich.console import Console, RenderableType

from specstack.core.branch_store.types import BranchStatus

STATUS_COLORS: dict[BranchStatus, str] = {
    BranchStatus.ACTIVE: "cyan",
    BranchStatus.SUBMITTED: "yellow",
    BranchStatus.MERGED: "green",
    BranchStatus.ABANDONED: "bright_black",
}


def user_output(message: str = "", nl: bool = True) -> None:
    """Write a human-facing message to stderr."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: str = "", nl: bool = True) -> None:
    """Write machine-readable data to stdout."""
    click.echo(message, nl=nl)


def styled_status(status: BranchStatus) -> str:
    return click.style(status.value, fg=STATUS_COLORS[status])


def render_rich(renderable: RenderableType, width: int = 100) -> str:
    """Render a rich object to plain text so it can go through user_output."""
    buffer = StringIO()
    console = Console(file=buffer, width=width, color_system=None, highlight=False)
    console.print(renderable)
    return buffer.getvalue().rstrip("\n")

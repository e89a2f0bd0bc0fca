import logging
import os

import click

from specstack.cli.commands.create import create_cmd
from specstack.cli.commands.delete import delete_cmd
from specstack.cli.commands.env import env_cmd
from specstack.cli.commands.import_cmd import import_cmd
from specstack.cli.commands.list_cmd import list_cmd
from specstack.cli.commands.status import status_cmd
from specstack.cli.commands.update import update_cmd
from specstack.cli.output import user_output
from specstack.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

DEBUG_FORMAT = "[DEBUG %(name)s:%(lineno)d] %(message)s"


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="specstack")
@click.option("--debug", is_flag=True, help="Enable debug logging (or set SPECSTACK_DEBUG=1).")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Track stacked branches across one or many repositories."""
    # Enable debug logging if SPECSTACK_DEBUG environment variable is set
    if debug or os.getenv("SPECSTACK_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format=DEBUG_FORMAT)

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        try:
            ctx.obj = create_context()
        except (ValueError, OSError) as e:
            user_output(click.style("Error: ", fg="red") + f"Invalid configuration: {e}")
            raise SystemExit(1) from None


# Register all commands
cli.add_command(create_cmd)
cli.add_command(delete_cmd)
cli.add_command(env_cmd)
cli.add_command(import_cmd)
cli.add_command(list_cmd)
cli.add_command(status_cmd)
cli.add_command(update_cmd)


def main() -> None:
    """CLI entry point used by the `specstack` console script."""
    cli()

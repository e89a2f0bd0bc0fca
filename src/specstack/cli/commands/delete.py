import click

from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.output import user_output
from specstack.core.context import SpecStackContext
from specstack.core.services.branch_service import BranchService


@click.command("delete")
@click.argument("name")
@click.option("--force", is_flag=True, help="Delete even if other branches are stacked on NAME.")
@click.pass_obj
@cli_error_boundary
def delete_cmd(ctx: SpecStackContext, name: str, force: bool) -> None:
    """Stop tracking branch NAME. The git branch is not deleted."""
    result = BranchService.for_context(ctx).delete(ctx.cwd, name, force=force)

    user_output(f"✓ Stopped tracking {click.style(name, fg='green', bold=True)}")
    user_output(f"  Note: git branch '{name}' still exists. Remove it with: git branch -d {name}")
    for orphan in result.orphaned:
        user_output(
            click.style("  ⚠ ", fg="yellow")
            + f"{orphan} is still stacked on '{name}', which is no longer tracked"
        )

import click

from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.output import user_output
from specstack.core.context import SpecStackContext
from specstack.core.repo_context import RepoMode
from specstack.core.services.branch_service import BranchService


@click.command("create")
@click.argument("name")
@click.option("--base", help="Branch to stack on. Defaults to the current branch.")
@click.option(
    "--spec",
    "spec_id",
    help="Spec id (NNN-short-name). Detected from the base or current branch if omitted.",
)
@click.pass_obj
@cli_error_boundary
def create_cmd(ctx: SpecStackContext, name: str, base: str | None, spec_id: str | None) -> None:
    """Create and check out a stacked branch NAME and start tracking it."""
    result = BranchService.for_context(ctx).create(ctx.cwd, name, base=base, spec_id=spec_id)
    entry = result.entry

    user_output(f"✓ Created branch {click.style(entry.name, fg='green', bold=True)}")
    user_output(f"  Base: {entry.base_branch}")
    user_output(f"  Spec: {entry.spec_id}")
    if result.context.mode is RepoMode.MULTI_REPO_CHILD:
        user_output(f"  Repository: {result.context.repo_name} (child)")
        if entry.parent_spec_id is not None:
            user_output(f"  Parent spec: {entry.parent_spec_id}")
    user_output()
    user_output(
        f"When the pull request is open, run: specstack update {entry.name} "
        f"--status submitted --pr <number>"
    )

import click

from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.output import styled_status, user_output
from specstack.core.context import SpecStackContext
from specstack.core.lifecycle import parse_status
from specstack.core.services.branch_service import BranchService


@click.command("update")
@click.argument("name")
@click.option("--status", "status_value", help="active, submitted, merged or abandoned.")
@click.option("--pr", "pr_ref", help="Pull request number (42, #42) or URL.")
@click.option("--base", help="New base branch.")
@click.pass_obj
@cli_error_boundary
def update_cmd(
    ctx: SpecStackContext,
    name: str,
    status_value: str | None,
    pr_ref: str | None,
    base: str | None,
) -> None:
    """Change the status, pull request or base of tracked branch NAME."""
    status = parse_status(status_value) if status_value is not None else None
    result = BranchService.for_context(ctx).update(
        ctx.cwd, name, status=status, pull_request_ref=pr_ref, base=base
    )

    if not result.changed:
        user_output(f"No changes for {name}.")
        return

    before, after = result.before, result.after
    user_output(f"✓ Updated {click.style(name, fg='green', bold=True)}")
    if before.status != after.status:
        user_output(f"  Status: {styled_status(before.status)} → {styled_status(after.status)}")
    if before.pull_request_ref != after.pull_request_ref:
        user_output(f"  Pull request: {after.pull_request_ref}")
    if before.base_branch != after.base_branch:
        user_output(f"  Base: {before.base_branch} → {after.base_branch}")

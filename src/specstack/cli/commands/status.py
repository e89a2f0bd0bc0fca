import logging

import click

from specstack.cli.commands.list_cmd import aggregate_from
from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.json_output import emit_model, json_error_boundary
from specstack.cli.json_schemas import aggregated_response, status_response
from specstack.cli.output import user_output
from specstack.cli.rendering import render_aggregated, render_status_lines
from specstack.core.context import SpecStackContext
from specstack.core.errors import GitAdapterError
from specstack.core.health import check_health
from specstack.core.services.branch_service import BranchService

logger = logging.getLogger(__name__)


@click.command("status")
@click.option("--all", "show_all", is_flag=True, help="Report every linked repository.")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout.")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def status_cmd(ctx: SpecStackContext, show_all: bool, json_output: bool) -> None:
    """Check tracked branches against git and suggest fixes."""
    service = BranchService.for_context(ctx)
    context = service.detect(ctx.cwd)

    if show_all and context.is_multi_repo:
        view = aggregate_from(ctx, context, with_health=True)
        if json_output:
            emit_model(aggregated_response(view))
            return
        user_output(render_aggregated(view, show_health=True))
        return

    mapping = service.load_required(context)
    try:
        trunk = service.trunk_for(context.repo_root)
    except GitAdapterError as e:
        logger.warning("Could not determine trunk branch: %s", e)
        trunk = None
    report = check_health(ctx.git, context.repo_root, mapping, trunk=trunk)

    if json_output:
        emit_model(status_response(report, mapping.branches))
        return

    for line in render_status_lines(mapping.branches, report):
        user_output(line)

import click

from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.json_output import emit_model, json_error_boundary
from specstack.cli.json_schemas import (
    ListResponse,
    aggregated_response,
    chain_info,
    entry_info,
)
from specstack.cli.output import user_output
from specstack.cli.rendering import render_aggregated, render_list_lines
from specstack.core.branch_store.ops import entries_for_spec
from specstack.core.aggregation import AggregatedView, aggregate
from specstack.core.context import SpecStackContext
from specstack.core.graph import compute_chains
from specstack.core.repo_context import RepoContext
from specstack.core.services.branch_service import BranchService


def aggregate_from(
    ctx: SpecStackContext, context: RepoContext, with_health: bool
) -> AggregatedView:
    """Aggregate from the spec root, wherever in the layout the command ran."""
    root_context = ctx.detector.detect(context.speck_root)
    return aggregate(
        root_context,
        ctx.detector,
        ctx.store,
        max_workers=ctx.config.aggregate_max_workers,
        timeout_seconds=ctx.config.aggregate_timeout_seconds,
        health_git=ctx.git if with_health else None,
    )


@click.command("list")
@click.option(
    "--all",
    "show_all",
    is_flag=True,
    help="All specs; across every linked repository in multi-repo mode.",
)
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout.")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def list_cmd(ctx: SpecStackContext, show_all: bool, json_output: bool) -> None:
    """Show tracked branches as dependency chains."""
    service = BranchService.for_context(ctx)
    context = service.detect(ctx.cwd)

    if show_all and context.is_multi_repo:
        view = aggregate_from(ctx, context, with_health=False)
        if json_output:
            emit_model(aggregated_response(view))
            return
        user_output(render_aggregated(view))
        return

    mapping = service.load_required(context)
    spec_id = None if show_all else service.current_spec_id(context, mapping)
    chains = compute_chains(mapping, spec_id)
    entries = list(mapping.branches) if spec_id is None else entries_for_spec(mapping, spec_id)

    if json_output:
        emit_model(
            ListResponse(
                repo_root=str(context.repo_root),
                spec_id=spec_id,
                branches=[entry_info(e) for e in entries],
                chains=[chain_info(c) for c in chains],
            )
        )
        return

    if not entries:
        user_output(f"No tracked branches for spec {spec_id}.")
        user_output("Run `specstack list --all` to see every spec.")
        return
    for line in render_list_lines(entries, chains):
        user_output(line)

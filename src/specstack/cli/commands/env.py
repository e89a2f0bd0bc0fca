import click

from specstack.cli.commands.list_cmd import aggregate_from
from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.json_output import emit_model, json_error_boundary
from specstack.cli.json_schemas import env_response
from specstack.cli.output import user_output
from specstack.cli.rendering import render_aggregated
from specstack.core.context import SpecStackContext


@click.command("env")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout.")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def env_cmd(ctx: SpecStackContext, json_output: bool) -> None:
    """Show the repository mode and, in multi-repo mode, every repo's branches."""
    context = ctx.detector.detect(ctx.cwd)
    view = aggregate_from(ctx, context, with_health=False) if context.is_multi_repo else None

    if json_output:
        emit_model(env_response(context, view))
        return

    user_output(f"Mode: {context.mode.value}")
    user_output(f"Repository: {context.repo_name} ({context.repo_root})")
    user_output(f"Spec root: {context.speck_root}")
    user_output(f"Specs: {context.specs_dir}")
    if context.parent_spec_id is not None:
        user_output(f"Parent spec: {context.parent_spec_id}")
    if view is not None:
        user_output()
        user_output(render_aggregated(view))

import json

import click

from specstack.cli.error_boundary import cli_error_boundary
from specstack.cli.json_schemas import import_prompt
from specstack.cli.output import user_output
from specstack.core.context import SpecStackContext
from specstack.core.errors import DisambiguationRequired, ValidationError
from specstack.core.importer import DisambiguationRequest, ImportChoice
from specstack.core.services.branch_service import BranchService

SKIP = "skip"


def parse_batch_choice(value: str) -> tuple[str, ImportChoice]:
    """Parse `name:specId` or `name:specId:base`."""
    parts = value.split(":")
    if len(parts) not in (2, 3) or not all(parts):
        raise ValidationError(
            f"Invalid --batch value '{value}'. Expected <name>:<spec-id> or <name>:<spec-id>:<base>."
        )
    base = parts[2] if len(parts) == 3 else None
    return parts[0], ImportChoice(spec_id=parts[1], base=base)


def prompt_for_choice(request: DisambiguationRequest) -> ImportChoice | None:
    """Ask for a spec and base; None means the user skipped the branch."""
    user_output()
    user_output(f"Branch: {click.style(request.name, bold=True)}")
    user_output(f"  Upstream: {request.upstream or '(none)'}")
    user_output(f"  Inferred base: {request.inferred_base}")
    user_output(f"  Needs input: {request.reason}")
    if not request.available_specs:
        user_output("  No specs available; skipping.")
        return None
    spec_id = click.prompt(
        "  Link to spec",
        type=click.Choice([*request.available_specs, SKIP]),
        default=SKIP,
        err=True,
    )
    if spec_id == SKIP:
        return None
    base = click.prompt("  Base branch", default=request.inferred_base, err=True)
    return ImportChoice(spec_id=spec_id, base=base)


@click.command("import")
@click.argument("pattern", required=False)
@click.option(
    "--batch",
    "batch",
    multiple=True,
    help="Decide a branch non-interactively: <name>:<spec-id>[:<base>]. Repeatable.",
)
@click.option("--interactive", is_flag=True, help="Prompt for branches that cannot be inferred.")
@click.pass_obj
@cli_error_boundary
def import_cmd(
    ctx: SpecStackContext,
    pattern: str | None,
    batch: tuple[str, ...],
    interactive: bool,
) -> None:
    """Start tracking existing local branches, optionally matching PATTERN.

    Bases are inferred from upstream refs and specs from branch names. When
    something cannot be inferred, a JSON `import-prompt` payload is written to
    stderr and the command exits with code 3; answer it with --batch.
    """
    service = BranchService.for_context(ctx)
    plan = service.plan_import(ctx.cwd, pattern)

    choices = dict(parse_batch_choice(value) for value in batch)
    skip: set[str] = set()
    if interactive:
        for request in plan.result.pending:
            if request.name in choices:
                continue
            choice = prompt_for_choice(request)
            if choice is None:
                skip.add(request.name)
            else:
                choices[request.name] = choice

    try:
        outcome = service.apply_import(plan, choices, skip=frozenset(skip))
    except DisambiguationRequired as e:
        payload = import_prompt(e.requests, plan.spec_ids)
        user_output(json.dumps(payload.model_dump(mode="json", by_alias=True), indent=2))
        raise SystemExit(e.exit_code) from None

    for entry in outcome.imported:
        user_output(f"✓ {entry.name} → {entry.spec_id} (base: {entry.base_branch})")
    for name in outcome.skipped:
        user_output(f"⊘ Skipped {name}")
    user_output()
    user_output(f"Imported: {len(outcome.imported)}  Skipped: {len(outcome.skipped)}")

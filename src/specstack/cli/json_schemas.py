"""Pydantic models for JSON output schemas.

This module defines the validated JSON schemas for CLI commands that support
--json output, plus converters from the core dataclasses.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from specstack.core.aggregation import AggregatedView, AggregationFailure, RepoSummary
from specstack.core.branch_store.types import BranchEntry
from specstack.core.graph import Chain
from specstack.core.health import HealthReport, HealthWarning
from specstack.core.importer import DisambiguationRequest
from specstack.core.repo_context import RepoContext


class BranchEntryInfo(BaseModel):
    """One tracked branch.

    Attributes:
        name: Branch name
        base_branch: Branch it is stacked on
        spec_id: Spec the branch implements
        parent_spec_id: Spec at the multi-repo root (children only)
        status: active, submitted, merged or abandoned
        pull_request_ref: PR number or URL, if any
        created_at: ISO 8601 timestamp
        updated_at: ISO 8601 timestamp
    """

    model_config = ConfigDict(strict=True)

    name: str
    base_branch: str
    spec_id: str
    parent_spec_id: str | None
    status: str = Field(..., pattern="^(active|submitted|merged|abandoned)$")
    pull_request_ref: str | None
    created_at: str
    updated_at: str


class ChainInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    spec_id: str
    base: str
    branches: list[str]


class HealthWarningInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    kind: str
    branch: str | None
    message: str
    suggestion: str | None


class RepoSummaryInfo(BaseModel):
    """Summary of one repository in an aggregated view."""

    model_config = ConfigDict(strict=True)

    name: str
    repo_root: str
    mode: str
    parent_spec_id: str | None
    branch_count: int
    status_counts: dict[str, int]
    spec_ids: list[str]
    chains: list[ChainInfo]
    branches: list[BranchEntryInfo]
    warnings: list[HealthWarningInfo] | None


class AggregationFailureInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    name: str
    repo_root: str | None
    error: str


class AggregatedResponse(BaseModel):
    """JSON response for `list --all` / `status --all` from a multi-repo root."""

    model_config = ConfigDict(strict=True)

    root: RepoSummaryInfo | None
    children: dict[str, RepoSummaryInfo]
    failures: list[AggregationFailureInfo]


class ListResponse(BaseModel):
    """JSON response schema for `specstack list --json` in a single repository.

    Attributes:
        repo_root: Repository root
        spec_id: Spec the listing was filtered to (None = all specs)
        branches: Tracked entries included in the listing
        chains: Root-to-leaf dependency chains
    """

    model_config = ConfigDict(strict=True)

    repo_root: str
    spec_id: str | None
    branches: list[BranchEntryInfo]
    chains: list[ChainInfo]


class StatusResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    repo_root: str
    branches: list[BranchEntryInfo]
    warnings: list[HealthWarningInfo]


class EnvResponse(BaseModel):
    """JSON response schema for `specstack env --json`."""

    model_config = ConfigDict(strict=True)

    mode: str
    repo_root: str
    repo_name: str
    speck_root: str
    specs_dir: str
    parent_spec_id: str | None
    aggregate: AggregatedResponse | None


class ImportPromptBranch(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    name: str
    upstream: str | None
    inferred_base: str = Field(alias="inferredBase")
    reason: str


class ImportPromptResponse(BaseModel):
    """Payload written to stderr when import needs decisions (exit code 3).

    Callers answer with `--batch name:specId[:base]` for each branch.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    type: Literal["import-prompt"] = "import-prompt"
    branches: list[ImportPromptBranch]
    available_specs: list[str] = Field(alias="availableSpecs")


# ============================================================================
# Converters
# ============================================================================


def entry_info(entry: BranchEntry) -> BranchEntryInfo:
    return BranchEntryInfo(
        name=entry.name,
        base_branch=entry.base_branch,
        spec_id=entry.spec_id,
        parent_spec_id=entry.parent_spec_id,
        status=entry.status.value,
        pull_request_ref=entry.pull_request_ref,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def chain_info(chain: Chain) -> ChainInfo:
    return ChainInfo(spec_id=chain.spec_id, base=chain.base, branches=list(chain.branches))


def warning_info(warning: HealthWarning) -> HealthWarningInfo:
    return HealthWarningInfo(
        kind=warning.kind.value,
        branch=warning.branch,
        message=warning.message,
        suggestion=warning.suggestion,
    )


def summary_info(summary: RepoSummary) -> RepoSummaryInfo:
    warnings = None
    if summary.health is not None:
        warnings = [warning_info(w) for w in summary.health.warnings]
    return RepoSummaryInfo(
        name=summary.name,
        repo_root=str(summary.repo_root),
        mode=summary.mode.value,
        parent_spec_id=summary.parent_spec_id,
        branch_count=summary.branch_count,
        status_counts=dict(summary.status_counts),
        spec_ids=list(summary.spec_ids),
        chains=[chain_info(c) for c in summary.chains],
        branches=[entry_info(e) for e in summary.entries],
        warnings=warnings,
    )


def failure_info(failure: AggregationFailure) -> AggregationFailureInfo:
    return AggregationFailureInfo(
        name=failure.name,
        repo_root=str(failure.repo_root) if failure.repo_root is not None else None,
        error=failure.error,
    )


def aggregated_response(view: AggregatedView) -> AggregatedResponse:
    return AggregatedResponse(
        root=summary_info(view.root) if view.root is not None else None,
        children={name: summary_info(s) for name, s in view.children.items()},
        failures=[failure_info(f) for f in view.failures],
    )


def status_response(report: HealthReport, entries: tuple[BranchEntry, ...]) -> StatusResponse:
    return StatusResponse(
        repo_root=str(report.repo_root),
        branches=[entry_info(e) for e in entries],
        warnings=[warning_info(w) for w in report.warnings],
    )


def env_response(context: RepoContext, view: AggregatedView | None) -> EnvResponse:
    return EnvResponse(
        mode=context.mode.value,
        repo_root=str(context.repo_root),
        repo_name=context.repo_name,
        speck_root=str(context.speck_root),
        specs_dir=str(context.specs_dir),
        parent_spec_id=context.parent_spec_id,
        aggregate=aggregated_response(view) if view is not None else None,
    )


def import_prompt(
    requests: list[DisambiguationRequest], available_specs: list[str]
) -> ImportPromptResponse:
    return ImportPromptResponse(
        branches=[
            ImportPromptBranch(
                name=r.name,
                upstream=r.upstream,
                inferred_base=r.inferred_base,
                reason=r.reason,
            )
            for r in requests
        ],
        available_specs=available_specs,
    )

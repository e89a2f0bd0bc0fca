"""Import of existing local branches into tracking.

Import runs in three steps:

1. discover_candidates: local branches not yet tracked (and not the trunk),
   each with its upstream ref, read through the git adapter
2. infer_imports: pure inference of base and spec for every candidate;
   anything that cannot be decided becomes a DisambiguationRequest
3. resolve_imports: merge inferences with caller-supplied ImportChoices into
   BranchEntry objects

Running import twice over unchanged branches yields nothing the second time,
because every imported branch is excluded by step 1.
"""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path

from specstack.core.branch_store.types import (
    BranchEntry,
    BranchMapping,
    BranchStatus,
    is_valid_spec_id,
)
from specstack.core.errors import DisambiguationRequired, GitAdapterError, InvalidSpecId
from specstack.core.git.abc import Git
from specstack.core.spec_dirs import specs_matching_branch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportCandidate:
    name: str
    upstream: str | None


@dataclass(frozen=True)
class InferredImport:
    name: str
    base_branch: str
    spec_id: str
    upstream: str | None


@dataclass(frozen=True)
class DisambiguationRequest:
    """A candidate whose spec or base needs a decision from the caller.

    Attributes:
        name: Branch name
        upstream: Upstream ref, if any
        inferred_base: Best-guess base (the trunk when nothing better is known)
        available_specs: Specs the caller may choose from
        reason: Why inference stopped
    """

    name: str
    upstream: str | None
    inferred_base: str
    available_specs: tuple[str, ...]
    reason: str


@dataclass(frozen=True)
class ImportChoice:
    spec_id: str
    base: str | None = None


@dataclass(frozen=True)
class ImportResult:
    inferred: tuple[InferredImport, ...]
    pending: tuple[DisambiguationRequest, ...]


def discover_candidates(
    git: Git,
    repo_root: Path,
    mapping: BranchMapping | None,
    trunk: str,
    pattern: str | None = None,
) -> list[ImportCandidate]:
    """Untracked local branches, optionally filtered by a glob pattern.

    A failing upstream lookup leaves that candidate without an upstream.
    """
    tracked = set(mapping.names()) if mapping is not None else set()
    candidates: list[ImportCandidate] = []
    for branch in git.list_local_branches(repo_root):
        if branch == trunk or branch in tracked:
            continue
        if pattern is not None and not fnmatch.fnmatchcase(branch, pattern):
            continue
        try:
            upstream = git.get_upstream(repo_root, branch)
        except GitAdapterError as e:
            logger.warning("Could not read upstream of %s: %s", branch, e)
            upstream = None
        candidates.append(ImportCandidate(name=branch, upstream=upstream))
    return candidates


def upstream_target(upstream: str, local_branches: set[str]) -> str:
    """Branch name an upstream ref refers to, with any remote prefix removed."""
    if upstream in local_branches or "/" not in upstream:
        return upstream
    return upstream.split("/", 1)[1]


def infer_imports(
    candidates: list[ImportCandidate],
    mapping: BranchMapping | None,
    local_branches: list[str],
    trunk: str,
    spec_ids: list[str],
) -> ImportResult:
    """Infer base and spec for each candidate without touching git or disk."""
    tracked = {e.name: e for e in mapping.branches} if mapping is not None else {}
    local = set(local_branches)

    bases: dict[str, str] = {}
    reasons: dict[str, str] = {}
    for candidate in candidates:
        if candidate.upstream is None:
            bases[candidate.name] = trunk
            reasons[candidate.name] = "no upstream branch to infer a base from"
            continue
        target = upstream_target(candidate.upstream, local)
        if target != candidate.name and (target in tracked or target in local):
            bases[candidate.name] = target
        else:
            bases[candidate.name] = trunk

    # Specs propagate along bases until nothing changes, so a candidate stacked
    # on another candidate inherits its spec regardless of listing order.
    specs: dict[str, str] = {}
    open_names = [c.name for c in candidates if c.name not in reasons]

    def inherit() -> None:
        changed = True
        while changed:
            changed = False
            for name in open_names:
                if name in specs:
                    continue
                base = bases[name]
                if base in tracked:
                    specs[name] = tracked[base].spec_id
                    changed = True
                elif base in specs:
                    specs[name] = specs[base]
                    changed = True

    inherit()
    ambiguous: dict[str, list[str]] = {}
    for name in open_names:
        if name in specs:
            continue
        matching = specs_matching_branch(name, spec_ids)
        if len(matching) == 1:
            specs[name] = matching[0]
        elif len(matching) > 1:
            ambiguous[name] = matching
    inherit()

    inferred: list[InferredImport] = []
    pending: list[DisambiguationRequest] = []
    for candidate in candidates:
        base = bases[candidate.name]
        if candidate.name in reasons:
            pending.append(
                DisambiguationRequest(
                    name=candidate.name,
                    upstream=candidate.upstream,
                    inferred_base=base,
                    available_specs=tuple(spec_ids),
                    reason=reasons[candidate.name],
                )
            )
            continue

        spec_id = specs.get(candidate.name)
        reason = ""
        if spec_id is None:
            if candidate.name in ambiguous:
                reason = (
                    f"branch name matches several specs: {', '.join(ambiguous[candidate.name])}"
                )
            elif len(spec_ids) == 1:
                spec_id = spec_ids[0]
            elif not spec_ids:
                reason = "no spec directories found"
            else:
                reason = "could not match the branch to a spec"

        if spec_id is None:
            pending.append(
                DisambiguationRequest(
                    name=candidate.name,
                    upstream=candidate.upstream,
                    inferred_base=base,
                    available_specs=tuple(spec_ids),
                    reason=reason,
                )
            )
        else:
            inferred.append(
                InferredImport(
                    name=candidate.name,
                    base_branch=base,
                    spec_id=spec_id,
                    upstream=candidate.upstream,
                )
            )

    return ImportResult(inferred=tuple(inferred), pending=tuple(pending))


def resolve_imports(
    result: ImportResult,
    choices: dict[str, ImportChoice],
    *,
    now: str,
    parent_spec_id: str | None = None,
) -> tuple[list[BranchEntry], list[DisambiguationRequest]]:
    """Build entries from inferences and choices.

    A choice overrides the inference for the same branch. Requests without a
    choice are returned unresolved and produce no entry.

    Raises:
        InvalidSpecId: A choice names a malformed spec id
    """
    for name, choice in choices.items():
        if not is_valid_spec_id(choice.spec_id):
            raise InvalidSpecId(
                f"Invalid spec id '{choice.spec_id}' for branch '{name}'. "
                f"Expected NNN-short-name (e.g. 007-multi-repo)."
            )

    entries: list[BranchEntry] = []
    unresolved: list[DisambiguationRequest] = []

    def build(name: str, base: str, spec_id: str) -> BranchEntry:
        return BranchEntry(
            name=name,
            base_branch=base,
            spec_id=spec_id,
            status=BranchStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            parent_spec_id=parent_spec_id,
        )

    for item in result.inferred:
        choice = choices.get(item.name)
        if choice is None:
            entries.append(build(item.name, item.base_branch, item.spec_id))
        else:
            entries.append(build(item.name, choice.base or item.base_branch, choice.spec_id))

    for request in result.pending:
        choice = choices.get(request.name)
        if choice is None:
            unresolved.append(request)
            continue
        entries.append(build(request.name, choice.base or request.inferred_base, choice.spec_id))

    return entries, unresolved


def require_resolved(unresolved: list[DisambiguationRequest]) -> None:
    """Raise DisambiguationRequired listing every branch still needing a choice."""
    if not unresolved:
        return
    names = ", ".join(r.name for r in unresolved)
    raise DisambiguationRequired(
        f"{len(unresolved)} branch(es) need a spec or base before import: {names}\n"
        f"Re-run with --batch <name>:<spec-id>[:<base>] for each, or use --interactive.",
        unresolved,
    )

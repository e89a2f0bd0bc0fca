"""Orchestration of branch create, update, delete and import.

Each operation validates everything it can before touching git or disk:
name and spec checks, base existence, lifecycle rules and the cycle check all
run against an in-memory mapping, and only then are git and the store called.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from specstack.core.branch_store.ops import (
    add_entry,
    empty_mapping,
    find_entry,
    remove_entry,
    replace_entry,
    require_entry,
)
from specstack.core.branch_store.store import BranchStore
from specstack.core.branch_store.types import (
    BranchEntry,
    BranchMapping,
    BranchStatus,
    is_valid_branch_name,
    is_valid_spec_id,
)
from specstack.core.config import LoadedConfig
from specstack.core.errors import (
    BaseBranchNotFound,
    BranchNotFound,
    CrossRepoBaseError,
    DirtyWorkingTreeError,
    DuplicateBranchError,
    HasDependentsError,
    InvalidBranchName,
    InvalidSpecId,
    NothingToImportError,
    NotInitializedError,
    SpecNotFoundError,
    ValidationError,
)
from specstack.core.git.abc import Git
from specstack.core.graph import check_base_change, dependents_of, validate_acyclic
from specstack.core.importer import (
    ImportChoice,
    ImportResult,
    discover_candidates,
    infer_imports,
    require_resolved,
    resolve_imports,
)
from specstack.core.lifecycle import apply_update, normalize_pull_request_ref
from specstack.core.repo_context import RepoContext, RepoContextDetector
from specstack.core.spec_dirs import list_spec_ids, specs_matching_branch
from specstack.core.time.abc import Time

if TYPE_CHECKING:
    from specstack.core.context import SpecStackContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateResult:
    entry: BranchEntry
    context: RepoContext


@dataclass(frozen=True)
class UpdateResult:
    before: BranchEntry
    after: BranchEntry

    @property
    def changed(self) -> bool:
        return self.before != self.after


@dataclass(frozen=True)
class DeleteResult:
    entry: BranchEntry
    orphaned: list[str]


@dataclass(frozen=True)
class ImportPlan:
    context: RepoContext
    trunk: str
    spec_ids: list[str]
    result: ImportResult


@dataclass(frozen=True)
class ImportOutcome:
    imported: list[BranchEntry]
    skipped: list[str]


class BranchService:
    """Branch operations over the injected git adapter and store."""

    def __init__(
        self,
        git: Git,
        store: BranchStore,
        time: Time,
        detector: RepoContextDetector,
        config: LoadedConfig,
    ) -> None:
        self._git = git
        self._store = store
        self._time = time
        self._detector = detector
        self._config = config

    @staticmethod
    def for_context(ctx: "SpecStackContext") -> "BranchService":
        return BranchService(
            git=ctx.git,
            store=ctx.store,
            time=ctx.time,
            detector=ctx.detector,
            config=ctx.config,
        )

    # ------------------------------------------------------------------
    # Shared lookups
    # ------------------------------------------------------------------

    def detect(self, cwd: Path) -> RepoContext:
        return self._detector.detect(cwd)

    def trunk_for(self, repo_root: Path) -> str:
        if self._config.trunk_branch is not None:
            return self._config.trunk_branch
        return self._git.get_trunk_branch(repo_root)

    def load_required(self, context: RepoContext) -> BranchMapping:
        mapping = self._store.load(context.repo_root)
        if mapping is None:
            raise NotInitializedError(
                f"No branches are tracked in {context.repo_root} yet.\n"
                f"Run `specstack create <name>` or `specstack import` to start."
            )
        return mapping

    def current_spec_id(self, context: RepoContext, mapping: BranchMapping | None) -> str | None:
        """Spec of the checked-out branch, if one can be determined."""
        branch = self._git.get_current_branch(context.repo_root)
        if branch is None:
            return None
        if mapping is not None:
            entry = find_entry(mapping, branch)
            if entry is not None:
                return entry.spec_id
        matching = specs_matching_branch(branch, list_spec_ids(context.specs_dir))
        if len(matching) == 1:
            return matching[0]
        return None

    def _require_base(self, context: RepoContext, mapping: BranchMapping, base: str) -> None:
        if find_entry(mapping, base) is not None:
            return
        if self._git.branch_exists(context.repo_root, base):
            return
        if context.is_multi_repo:
            raise CrossRepoBaseError(
                f"Base branch '{base}' does not exist in {context.repo_name} "
                f"({context.repo_root}).\n"
                f"Cross-repo stacking is not supported: each repository stacks on its "
                f"own branches. Use a local branch such as "
                f"'{self.trunk_for(context.repo_root)}' as the base."
            )
        raise BaseBranchNotFound(
            f"Base branch '{base}' does not exist.\n"
            f"Create it first or pass --base with an existing branch."
        )

    def _resolve_spec(
        self,
        context: RepoContext,
        mapping: BranchMapping,
        requested: str | None,
        name: str,
        base: str,
    ) -> str:
        spec_ids = list_spec_ids(context.specs_dir)

        if requested is not None:
            if not is_valid_spec_id(requested):
                raise InvalidSpecId(
                    f"Invalid spec id '{requested}'. Expected NNN-short-name (e.g. 007-multi-repo)."
                )
            if requested not in spec_ids:
                raise SpecNotFoundError(
                    f"Spec '{requested}' not found in {context.specs_dir}.\n"
                    f"Available specs: {', '.join(spec_ids) or '(none)'}"
                )
            return requested

        base_entry = find_entry(mapping, base)
        if base_entry is not None:
            return base_entry.spec_id

        by_name = specs_matching_branch(name, spec_ids)
        if len(by_name) == 1:
            return by_name[0]

        detected = self.current_spec_id(context, mapping)
        if detected is not None:
            return detected

        if context.parent_spec_id is not None and context.parent_spec_id in spec_ids:
            return context.parent_spec_id

        if len(spec_ids) == 1:
            return spec_ids[0]

        raise SpecNotFoundError(
            f"Could not determine which spec this branch belongs to.\n"
            f"Pass --spec with one of: {', '.join(spec_ids) or '(no specs found)'}"
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(
        self,
        cwd: Path,
        name: str,
        base: str | None = None,
        spec_id: str | None = None,
    ) -> CreateResult:
        """Create and check out a new stacked branch and start tracking it."""
        context = self.detect(cwd)
        repo_root = context.repo_root

        if not is_valid_branch_name(name):
            raise InvalidBranchName(
                f"Invalid branch name '{name}'. Use letters, digits, '.', '_', '-' and '/' "
                f"(no '..', '//', leading '-' or trailing '.lock')."
            )

        if self._git.has_uncommitted_changes(repo_root):
            raise DirtyWorkingTreeError(
                f"Working tree at {repo_root} has uncommitted changes.\n"
                f"Commit or stash them before creating a branch."
            )

        mapping = self._store.load(repo_root)
        if mapping is None:
            mapping = empty_mapping()

        if find_entry(mapping, name) is not None:
            raise DuplicateBranchError(f"Branch '{name}' is already tracked")
        if self._git.branch_exists(repo_root, name):
            raise DuplicateBranchError(
                f"Branch '{name}' already exists in git.\n"
                f"Run `specstack import '{name}'` to start tracking it."
            )

        if base is None:
            base = self._git.get_current_branch(repo_root) or self.trunk_for(repo_root)
        self._require_base(context, mapping, base)

        resolved_spec = self._resolve_spec(context, mapping, spec_id, name, base)
        check_base_change(mapping, name, base)

        now = self._time.now_iso()
        entry = BranchEntry(
            name=name,
            base_branch=base,
            spec_id=resolved_spec,
            status=BranchStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            parent_spec_id=context.parent_spec_id,
        )
        validate_acyclic(add_entry(mapping, entry))

        logger.debug("Creating %s from %s in %s", name, base, repo_root)
        self._git.create_branch(repo_root, name, base)
        self._git.checkout_branch(repo_root, name)
        self._store.mutate(repo_root, lambda m: add_entry(m, entry))
        return CreateResult(entry=entry, context=context)

    def update(
        self,
        cwd: Path,
        name: str,
        status: BranchStatus | None = None,
        pull_request_ref: str | None = None,
        base: str | None = None,
    ) -> UpdateResult:
        """Apply a validated status, pull request or base change."""
        if status is None and pull_request_ref is None and base is None:
            raise ValidationError("Nothing to update. Pass --status, --pr or --base.")

        context = self.detect(cwd)
        mapping = self.load_required(context)
        before = require_entry(mapping, name)

        normalized_ref = None
        if pull_request_ref is not None:
            normalized_ref = normalize_pull_request_ref(pull_request_ref)
            if not normalized_ref:
                raise ValidationError("Pull request reference must not be empty")

        after = apply_update(
            before,
            now=self._time.now_iso(),
            status=status,
            pull_request_ref=normalized_ref,
            base_branch=base,
        )
        if after.base_branch != before.base_branch:
            self._require_base(context, mapping, after.base_branch)
            check_base_change(mapping, name, after.base_branch)

        if after == before:
            return UpdateResult(before=before, after=after)

        self._store.mutate(context.repo_root, lambda m: replace_entry(m, after))
        return UpdateResult(before=before, after=after)

    def delete(self, cwd: Path, name: str, force: bool = False) -> DeleteResult:
        """Stop tracking a branch. The git branch itself is left alone.

        With force, direct dependents keep their base name and become roots.
        """
        context = self.detect(cwd)
        mapping = self.load_required(context)
        entry = require_entry(mapping, name)

        dependents = dependents_of(mapping, name)
        if dependents and not force:
            raise HasDependentsError(
                f"Cannot delete '{name}': {len(dependents)} branch(es) are stacked on it: "
                f"{', '.join(dependents)}\n"
                f"Delete or re-base them first, or pass --force to orphan them.",
                dependents,
            )

        self._store.mutate(context.repo_root, lambda m: remove_entry(m, name))
        return DeleteResult(entry=entry, orphaned=dependents)

    def plan_import(self, cwd: Path, pattern: str | None = None) -> ImportPlan:
        """Discover untracked branches and infer what can be inferred.

        Raises:
            NothingToImportError: No untracked local branches match
        """
        context = self.detect(cwd)
        repo_root = context.repo_root
        trunk = self.trunk_for(repo_root)
        mapping = self._store.load(repo_root)

        candidates = discover_candidates(self._git, repo_root, mapping, trunk, pattern)
        if not candidates:
            suffix = f" matching '{pattern}'" if pattern else ""
            raise NothingToImportError(f"No untracked branches{suffix} to import.")

        spec_ids = list_spec_ids(context.specs_dir)
        result = infer_imports(
            candidates,
            mapping,
            self._git.list_local_branches(repo_root),
            trunk,
            spec_ids,
        )
        return ImportPlan(context=context, trunk=trunk, spec_ids=spec_ids, result=result)

    def apply_import(
        self,
        plan: ImportPlan,
        choices: dict[str, ImportChoice],
        skip: frozenset[str] = frozenset(),
    ) -> ImportOutcome:
        """Persist the plan once every pending branch is chosen or skipped.

        Raises:
            DisambiguationRequired: Some branches still need a choice; nothing
                is written in that case
        """
        known = {i.name for i in plan.result.inferred} | {r.name for r in plan.result.pending}
        for name, choice in choices.items():
            if name not in known:
                raise BranchNotFound(
                    f"'{name}' is not an untracked local branch; nothing to import for it"
                )
            if is_valid_spec_id(choice.spec_id) and choice.spec_id not in plan.spec_ids:
                raise SpecNotFoundError(
                    f"Spec '{choice.spec_id}' for branch '{name}' not found in "
                    f"{plan.context.specs_dir}"
                )

        mapping = self._store.load(plan.context.repo_root) or empty_mapping()
        for choice in choices.values():
            if choice.base is not None and choice.base not in known:
                self._require_base(plan.context, mapping, choice.base)

        entries, unresolved = resolve_imports(
            plan.result,
            choices,
            now=self._time.now_iso(),
            parent_spec_id=plan.context.parent_spec_id,
        )
        require_resolved([r for r in unresolved if r.name not in skip])

        entries = [e for e in entries if e.name not in skip]
        if entries:

            def add_all(mapping: BranchMapping) -> BranchMapping:
                for entry in entries:
                    mapping = add_entry(mapping, entry)
                return mapping

            self._store.mutate(plan.context.repo_root, add_all)
            logger.debug("Imported %d branch(es)", len(entries))

        return ImportOutcome(imported=entries, skipped=sorted(skip & known))

"""Best-effort health checks for tracked branches.

Checks compare the persisted metadata with what git reports. Git failures
never raise from here; they become `check-skipped` warnings.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from specstack.core.branch_store.types import BranchMapping, BranchStatus
from specstack.core.errors import GitAdapterError
from specstack.core.git.abc import Git
from specstack.core.graph import find_stale_branches

logger = logging.getLogger(__name__)


class WarningKind(Enum):
    MERGED_NOT_FLAGGED = "merged-not-flagged"
    REBASE_NEEDED = "rebase-needed"
    MISSING_BASE = "missing-base"
    TERMINAL_MISMATCH = "terminal-mismatch"
    SUBMITTED_WITHOUT_PR = "submitted-without-pr"
    UNTRACKED_BASE = "untracked-base"
    CHECK_SKIPPED = "check-skipped"


@dataclass(frozen=True)
class HealthWarning:
    kind: WarningKind
    branch: str | None
    message: str
    suggestion: str | None = None


@dataclass(frozen=True)
class HealthReport:
    repo_root: Path
    warnings: tuple[HealthWarning, ...]

    def for_branch(self, name: str | None) -> list[HealthWarning]:
        return [w for w in self.warnings if w.branch == name]


def check_health(
    git: Git,
    repo_root: Path,
    mapping: BranchMapping,
    trunk: str | None = None,
) -> HealthReport:
    """Compare every entry with git.

    When `trunk` is given, entries stacked on a branch that is neither tracked
    nor the trunk (typically after `delete --force`) are flagged as well.
    """
    warnings: list[HealthWarning] = []
    tracked = {e.name for e in mapping.branches}

    for entry in mapping.branches:
        if entry.status is BranchStatus.SUBMITTED and not entry.pull_request_ref:
            warnings.append(
                HealthWarning(
                    kind=WarningKind.SUBMITTED_WITHOUT_PR,
                    branch=entry.name,
                    message=f"{entry.name} is submitted but has no pull request reference",
                    suggestion=f"Run: specstack update {entry.name} --pr <number-or-url>",
                )
            )

        if (
            trunk is not None
            and entry.base_branch not in tracked
            and entry.base_branch != trunk
            and not entry.status.is_terminal
        ):
            warnings.append(
                HealthWarning(
                    kind=WarningKind.UNTRACKED_BASE,
                    branch=entry.name,
                    message=f"{entry.name} is stacked on '{entry.base_branch}', which is not tracked",
                    suggestion=f"Run: specstack update {entry.name} --base <tracked-branch-or-{trunk}>",
                )
            )

        try:
            base_exists = entry.base_branch in tracked or git.branch_exists(
                repo_root, entry.base_branch
            )
            if not base_exists:
                warnings.append(
                    HealthWarning(
                        kind=WarningKind.MISSING_BASE,
                        branch=entry.name,
                        message=f"Base branch '{entry.base_branch}' of {entry.name} no longer exists",
                        suggestion=f"Run: specstack update {entry.name} --base <branch>",
                    )
                )
                continue

            if entry.status is BranchStatus.ABANDONED:
                continue
            if not git.branch_exists(repo_root, entry.name):
                # Deleted after merge is normal; nothing further to compare
                continue
            merged = git.is_merged_into(repo_root, entry.name, entry.base_branch)
        except GitAdapterError as e:
            logger.warning("Health check skipped for %s: %s", entry.name, e)
            warnings.append(
                HealthWarning(
                    kind=WarningKind.CHECK_SKIPPED,
                    branch=entry.name,
                    message=f"Could not check {entry.name} against git",
                )
            )
            continue

        if merged and entry.status is not BranchStatus.MERGED:
            warnings.append(
                HealthWarning(
                    kind=WarningKind.MERGED_NOT_FLAGGED,
                    branch=entry.name,
                    message=(
                        f"MERGED: {entry.name} is merged into {entry.base_branch} "
                        f"but status is {entry.status.value}"
                    ),
                    suggestion=f"Run: specstack update {entry.name} --status merged",
                )
            )
        elif not merged and entry.status is BranchStatus.MERGED:
            warnings.append(
                HealthWarning(
                    kind=WarningKind.TERMINAL_MISMATCH,
                    branch=entry.name,
                    message=(
                        f"{entry.name} is marked merged but git does not show it "
                        f"merged into {entry.base_branch}"
                    ),
                )
            )

    staleness = find_stale_branches(git, repo_root, mapping)
    for name, merged_base in staleness.needs_rebase.items():
        warnings.append(
            HealthWarning(
                kind=WarningKind.REBASE_NEEDED,
                branch=name,
                message=f"REBASE NEEDED: {name} is stacked on {merged_base}, which has been merged",
                suggestion=f"Rebase {name} onto the base of {merged_base}",
            )
        )
    for message in staleness.warnings:
        warnings.append(HealthWarning(kind=WarningKind.CHECK_SKIPPED, branch=None, message=message))

    return HealthReport(repo_root=repo_root, warnings=tuple(warnings))

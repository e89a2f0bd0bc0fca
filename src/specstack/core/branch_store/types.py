"""Branch mapping data types."""

import re
from dataclasses import dataclass, field
from enum import Enum

BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
SPEC_ID_PATTERN = re.compile(r"^\d{3}-[a-z0-9-]+$")


class BranchStatus(Enum):
    """Lifecycle status of a tracked branch."""

    ACTIVE = "active"
    SUBMITTED = "submitted"
    MERGED = "merged"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (BranchStatus.MERGED, BranchStatus.ABANDONED)


@dataclass(frozen=True)
class BranchEntry:
    """One tracked branch and the branch it is stacked on.

    `base_branch` may name another tracked entry or an untracked branch such as
    the trunk. `parent_spec_id` is only set in child repositories of a
    multi-repo setup.
    """

    name: str
    base_branch: str
    spec_id: str
    status: BranchStatus
    created_at: str  # ISO 8601 format
    updated_at: str  # ISO 8601 format
    pull_request_ref: str | None = None
    parent_spec_id: str | None = None


@dataclass(frozen=True)
class BranchMapping:
    """All tracked branches of one repository, in insertion order.

    `spec_index` is derived from `branches` and is rebuilt on every save.
    """

    schema_version: str
    branches: tuple[BranchEntry, ...] = ()
    spec_index: dict[str, list[str]] = field(default_factory=dict)

    def names(self) -> list[str]:
        return [entry.name for entry in self.branches]


def is_valid_branch_name(name: str) -> bool:
    """Check a branch name against the subset of git ref-format rules we enforce."""
    if not name or not BRANCH_NAME_PATTERN.match(name):
        return False
    if name.startswith(("-", "/")) or name.endswith(("/", ".lock", ".")):
        return False
    if ".." in name or "//" in name:
        return False
    return True


def is_valid_spec_id(spec_id: str) -> bool:
    return bool(SPEC_ID_PATTERN.match(spec_id))

"""Lifecycle state machine for tracked branches.

    active ──► submitted ──► merged
       │           │
       └──► abandoned ◄──┘

merged and abandoned are terminal.
"""

import re
from dataclasses import replace

from specstack.core.branch_store.types import BranchEntry, BranchStatus
from specstack.core.errors import InvalidStatus, InvalidTransition, MissingPullRequestRef

ALLOWED_TRANSITIONS: dict[BranchStatus, frozenset[BranchStatus]] = {
    BranchStatus.ACTIVE: frozenset({BranchStatus.SUBMITTED, BranchStatus.ABANDONED}),
    BranchStatus.SUBMITTED: frozenset({BranchStatus.MERGED, BranchStatus.ABANDONED}),
    BranchStatus.MERGED: frozenset(),
    BranchStatus.ABANDONED: frozenset(),
}

_PR_NUMBER = re.compile(r"^#?(\d+)$")


def parse_status(value: str) -> BranchStatus:
    try:
        return BranchStatus(value.lower())
    except ValueError:
        valid = ", ".join(s.value for s in BranchStatus)
        raise InvalidStatus(f"Invalid status '{value}'. Valid statuses: {valid}") from None


def normalize_pull_request_ref(value: str) -> str:
    """Accept `42`, `#42` or a URL; `#42` is stored as `42`."""
    stripped = value.strip()
    match = _PR_NUMBER.match(stripped)
    if match:
        return match.group(1)
    return stripped


def validate_transition(
    entry: BranchEntry,
    new_status: BranchStatus,
    pull_request_ref: str | None = None,
) -> None:
    """Check that `entry` may move to `new_status`.

    `pull_request_ref` is the ref supplied with the same update, if any.

    Raises:
        InvalidTransition: The move is not an edge of the state machine
        MissingPullRequestRef: Entering submitted with no ref on the entry or update
    """
    if new_status == entry.status:
        return

    if new_status not in ALLOWED_TRANSITIONS[entry.status]:
        if entry.status.is_terminal:
            detail = f"'{entry.status.value}' is a terminal status"
        else:
            allowed = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[entry.status]))
            detail = f"from '{entry.status.value}' you can move to: {allowed}"
        raise InvalidTransition(
            f"Cannot change status of '{entry.name}' from '{entry.status.value}' "
            f"to '{new_status.value}': {detail}"
        )

    if new_status is BranchStatus.SUBMITTED:
        effective = pull_request_ref if pull_request_ref is not None else entry.pull_request_ref
        if not effective or not effective.strip():
            raise MissingPullRequestRef(
                f"Branch '{entry.name}' needs a pull request reference to be submitted.\n"
                f"Re-run with --pr <number-or-url>."
            )


def apply_update(
    entry: BranchEntry,
    *,
    now: str,
    status: BranchStatus | None = None,
    pull_request_ref: str | None = None,
    base_branch: str | None = None,
) -> BranchEntry:
    """Return the entry with the requested changes after validating them.

    Terminal entries accept no changes other than a same-status no-op.
    """
    if entry.status.is_terminal:
        changes = []
        if pull_request_ref is not None and pull_request_ref != entry.pull_request_ref:
            changes.append("pull request reference")
        if base_branch is not None and base_branch != entry.base_branch:
            changes.append("base branch")
        if changes:
            raise InvalidTransition(
                f"Cannot change the {' and '.join(changes)} of '{entry.name}': "
                f"it is '{entry.status.value}', which is terminal"
            )

    if status is not None:
        validate_transition(entry, status, pull_request_ref)

    updated = replace(
        entry,
        status=status if status is not None else entry.status,
        pull_request_ref=(
            pull_request_ref if pull_request_ref is not None else entry.pull_request_ref
        ),
        base_branch=base_branch if base_branch is not None else entry.base_branch,
    )
    if updated == entry:
        return entry
    return replace(updated, updated_at=max(now, entry.updated_at))

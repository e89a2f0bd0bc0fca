"""Pure operations on branch mappings.

Every function returns a new BranchMapping and never mutates its input.
"""

from dataclasses import replace

from specstack.core.branch_store.schema import CURRENT_SCHEMA_VERSION, build_spec_index
from specstack.core.branch_store.types import BranchEntry, BranchMapping
from specstack.core.errors import BranchNotFound, DuplicateBranchError


def empty_mapping() -> BranchMapping:
    return BranchMapping(schema_version=CURRENT_SCHEMA_VERSION, branches=(), spec_index={})


def with_branches(mapping: BranchMapping, branches: tuple[BranchEntry, ...]) -> BranchMapping:
    """Return a mapping holding `branches` with a freshly derived spec index."""
    return replace(mapping, branches=branches, spec_index=build_spec_index(branches))


def find_entry(mapping: BranchMapping, name: str) -> BranchEntry | None:
    for entry in mapping.branches:
        if entry.name == name:
            return entry
    return None


def require_entry(mapping: BranchMapping, name: str) -> BranchEntry:
    entry = find_entry(mapping, name)
    if entry is None:
        raise BranchNotFound(
            f"Branch '{name}' is not tracked.\n"
            f"Run `specstack list --all` to see tracked branches, "
            f"or `specstack import` to start tracking it."
        )
    return entry


def add_entry(mapping: BranchMapping, entry: BranchEntry) -> BranchMapping:
    if find_entry(mapping, entry.name) is not None:
        raise DuplicateBranchError(f"Branch '{entry.name}' is already tracked")
    return with_branches(mapping, (*mapping.branches, entry))


def replace_entry(mapping: BranchMapping, entry: BranchEntry) -> BranchMapping:
    """Swap the entry with the same name, keeping its position."""
    require_entry(mapping, entry.name)
    branches = tuple(entry if e.name == entry.name else e for e in mapping.branches)
    return with_branches(mapping, branches)


def remove_entry(mapping: BranchMapping, name: str) -> BranchMapping:
    require_entry(mapping, name)
    return with_branches(mapping, tuple(e for e in mapping.branches if e.name != name))


def entries_for_spec(mapping: BranchMapping, spec_id: str) -> list[BranchEntry]:
    return [e for e in mapping.branches if e.spec_id == spec_id]


def find_duplicate_names(mapping: BranchMapping) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for entry in mapping.branches:
        if entry.name in seen and entry.name not in duplicates:
            duplicates.append(entry.name)
        seen.add(entry.name)
    return duplicates

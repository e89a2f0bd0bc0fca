"""Lookup of spec directories under `<speck_root>/specs`."""

import re
from pathlib import Path

from specstack.core.branch_store.types import is_valid_spec_id

_NUMBER_PREFIX = re.compile(r"(?:^|/)(\d{3})-")


def list_spec_ids(specs_dir: Path) -> list[str]:
    """Spec directory names (`NNN-short-name`), sorted."""
    if not specs_dir.is_dir():
        return []
    return sorted(p.name for p in specs_dir.iterdir() if p.is_dir() and is_valid_spec_id(p.name))


def spec_number_of(branch: str) -> str | None:
    """The `NNN` prefix of a branch name or of its last path segment."""
    match = _NUMBER_PREFIX.search(branch)
    return match.group(1) if match else None


def specs_matching_branch(branch: str, spec_ids: list[str]) -> list[str]:
    """Specs sharing the branch's `NNN-` prefix. An exact name match wins."""
    if branch in spec_ids:
        return [branch]
    number = spec_number_of(branch)
    if number is None:
        return []
    return [s for s in spec_ids if s.startswith(f"{number}-")]

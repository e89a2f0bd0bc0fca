"""Tests for BranchStore implementations and pure mapping operations."""

import json
from pathlib import Path

import pytest

from specstack.core.branch_store.ops import (
    add_entry,
    empty_mapping,
    entries_for_spec,
    remove_entry,
    replace_entry,
    require_entry,
)
from specstack.core.branch_store.schema import serialize_mapping
from specstack.core.branch_store.store import FakeBranchStore, RealBranchStore, mapping_path
from specstack.core.branch_store.types import (
    BranchMapping,
    BranchStatus,
    is_valid_branch_name,
    is_valid_spec_id,
)
from specstack.core.errors import BranchNotFound, CycleError, DuplicateBranchError
from tests.test_utils.builders import make_entry, make_mapping


def test_real_store_load_missing_returns_none(tmp_path: Path) -> None:
    """A repository without .speck/branches.json is uninitialized."""
    assert RealBranchStore().load(tmp_path) is None


def test_real_store_save_and_load(tmp_path: Path) -> None:
    """Saving creates .speck/ and the document reloads unchanged."""
    store = RealBranchStore()
    mapping = make_mapping(make_entry("a"), make_entry("b", base="a"))

    written = store.save(tmp_path, mapping)
    loaded = store.load(tmp_path)

    assert mapping_path(tmp_path).exists()
    assert loaded == written
    assert loaded is not None
    assert loaded.spec_index == {"001-auth": ["a", "b"]}


def test_real_store_leaves_no_temp_files(tmp_path: Path) -> None:
    """The atomic write renames its temp file into place."""
    store = RealBranchStore()
    store.save(tmp_path, make_mapping(make_entry("a")))
    store.save(tmp_path, make_mapping(make_entry("a"), make_entry("b")))

    leftovers = [p.name for p in (tmp_path / ".speck").iterdir()]
    assert leftovers == ["branches.json"]


def test_save_rebuilds_stale_index(tmp_path: Path) -> None:
    store = RealBranchStore()
    stale = BranchMapping(
        schema_version="1.1.0",
        branches=(make_entry("a"),),
        spec_index={"009-other": ["zzz"]},
    )

    written = store.save(tmp_path, stale)

    assert written.spec_index == {"001-auth": ["a"]}
    data = json.loads(mapping_path(tmp_path).read_text(encoding="utf-8"))
    assert data["specIndex"] == {"001-auth": ["a"]}


def test_save_rejects_duplicate_names(tmp_path: Path) -> None:
    store = RealBranchStore()
    mapping = BranchMapping(schema_version="1.1.0", branches=(make_entry("a"), make_entry("a")))

    with pytest.raises(DuplicateBranchError):
        store.save(tmp_path, mapping)

    assert not mapping_path(tmp_path).exists()


def test_mutate_starts_from_empty_mapping() -> None:
    store = FakeBranchStore()
    root = Path("/repo")

    result = store.mutate(root, lambda m: add_entry(m, make_entry("a")))

    assert result.names() == ["a"]
    assert store.save_count == 1
    assert store.load(root) == result


def test_mutate_writes_nothing_when_function_raises() -> None:
    root = Path("/repo")
    original = serialize_mapping(make_mapping(make_entry("a")))
    store = FakeBranchStore(documents={root: original})

    with pytest.raises(DuplicateBranchError):
        store.mutate(root, lambda m: add_entry(m, make_entry("a")))

    assert store.save_count == 0
    assert store.document(root) == original


def test_mutate_rejects_cycles() -> None:
    """Validation runs on the mutated mapping before anything is written."""
    root = Path("/repo")
    original = serialize_mapping(make_mapping(make_entry("a"), make_entry("b", base="a")))
    store = FakeBranchStore(documents={root: original})

    with pytest.raises(CycleError):
        store.mutate(root, lambda m: replace_entry(m, make_entry("a", base="b")))

    assert store.save_count == 0


def test_fake_store_exercises_migration() -> None:
    """FakeBranchStore parses its documents, so old versions migrate on load."""
    root = Path("/repo")
    legacy = json.dumps(
        {
            "schemaVersion": "1.0.0",
            "branches": [
                {
                    "name": "a",
                    "baseBranch": "main",
                    "specId": "001-auth",
                    "status": "submitted",
                    "pr": 8,
                    "createdAt": "2025-01-01T12:00:00+00:00",
                    "updatedAt": "2025-01-01T12:00:00+00:00",
                }
            ],
        }
    )
    store = FakeBranchStore(documents={root: legacy})

    mapping = store.load(root)

    assert mapping is not None
    assert mapping.branches[0].pull_request_ref == "8"


def test_add_entry_is_pure() -> None:
    original = empty_mapping()

    updated = add_entry(original, make_entry("a"))

    assert original.branches == ()
    assert updated.names() == ["a"]
    assert updated.spec_index == {"001-auth": ["a"]}


def test_replace_entry_keeps_position() -> None:
    mapping = make_mapping(make_entry("a"), make_entry("b"), make_entry("c"))

    updated = replace_entry(mapping, make_entry("b", status=BranchStatus.ABANDONED))

    assert updated.names() == ["a", "b", "c"]
    assert updated.branches[1].status is BranchStatus.ABANDONED


def test_remove_entry_updates_index() -> None:
    mapping = make_mapping(make_entry("a"), make_entry("b", spec_id="002-billing"))

    updated = remove_entry(mapping, "b")

    assert updated.names() == ["a"]
    assert updated.spec_index == {"001-auth": ["a"]}


def test_require_entry_missing_raises() -> None:
    with pytest.raises(BranchNotFound) as exc_info:
        require_entry(empty_mapping(), "ghost")

    assert exc_info.value.exit_code == 11


def test_entries_for_spec() -> None:
    mapping = make_mapping(
        make_entry("a"), make_entry("b", spec_id="002-billing"), make_entry("c")
    )

    assert [e.name for e in entries_for_spec(mapping, "001-auth")] == ["a", "c"]


@pytest.mark.parametrize(
    "name",
    ["feature", "user/feature-1", "007-multi-repo", "fix_bug.2"],
)
def test_valid_branch_names(name: str) -> None:
    assert is_valid_branch_name(name)


@pytest.mark.parametrize(
    "name",
    ["", "-feature", "/feature", "feature/", "a..b", "a//b", "x.lock", "has space", "a~b"],
)
def test_invalid_branch_names(name: str) -> None:
    assert not is_valid_branch_name(name)


def test_spec_id_pattern() -> None:
    assert is_valid_spec_id("007-multi-repo")
    assert not is_valid_spec_id("7-multi-repo")
    assert not is_valid_spec_id("007-Multi")
    assert not is_valid_spec_id("007_multi")

"""Tests for multi-repo aggregation."""

import threading
from pathlib import Path

import pytest

from specstack.core.aggregation import aggregate, count_statuses
from specstack.core.branch_store.store import RealBranchStore, mapping_path
from specstack.core.branch_store.types import BranchMapping, BranchStatus
from specstack.core.errors import ContextError
from specstack.core.git.fake import FakeGit
from specstack.core.repo_context import RepoContextDetector
from tests.test_utils.builders import make_entry, make_mapping
from tests.test_utils.repo_setup import MultiRepo, make_multi_repo


class BlockingStore(RealBranchStore):
    """RealBranchStore whose loads for one repository wait on an event."""

    def __init__(self, blocked_root: Path, release: threading.Event) -> None:
        self._blocked_root = blocked_root
        self._release = release

    def load(self, repo_root: Path) -> BranchMapping | None:
        if repo_root == self._blocked_root:
            self._release.wait(timeout=5)
        return super().load(repo_root)


def _setup(tmp_path: Path) -> tuple[MultiRepo, FakeGit, RealBranchStore]:
    layout = make_multi_repo(tmp_path)
    repos = [layout.root, *layout.children.values()]
    git = FakeGit(
        repo_roots={r: r for r in repos},
        current_branches={layout.root: "007-multi-repo"},
        local_branches={r: ["main"] for r in repos},
    )
    store = RealBranchStore()
    store.save(
        layout.children["backend"],
        make_mapping(
            make_entry("api-db", spec_id="007-multi-repo", parent_spec_id="007-multi-repo"),
            make_entry(
                "api-routes",
                base="api-db",
                spec_id="007-multi-repo",
                status=BranchStatus.MERGED,
                pull_request_ref="12",
                parent_spec_id="007-multi-repo",
            ),
        ),
    )
    store.save(
        layout.children["frontend"],
        make_mapping(make_entry("ui-shell", spec_id="007-multi-repo")),
    )
    return layout, git, store


def test_aggregate_root_and_children(tmp_path: Path) -> None:
    layout, git, store = _setup(tmp_path)
    detector = RepoContextDetector(git)

    view = aggregate(
        detector.detect(layout.root), detector, store, max_workers=4, timeout_seconds=5
    )

    assert view.failures == ()
    assert view.root is not None
    assert view.root.branch_count == 0
    assert list(view.children) == ["backend", "frontend"]
    backend = view.children["backend"]
    assert backend.parent_spec_id == "007-multi-repo"
    assert backend.status_counts == {"active": 1, "merged": 1}
    assert [c.branches for c in backend.chains] == [("api-db", "api-routes")]
    assert view.children["frontend"].branch_count == 1


def test_aggregate_with_health(tmp_path: Path) -> None:
    layout, git, store = _setup(tmp_path)
    detector = RepoContextDetector(git)

    view = aggregate(
        detector.detect(layout.root),
        detector,
        store,
        max_workers=2,
        timeout_seconds=5,
        health_git=git,
    )

    backend = view.children["backend"]
    assert backend.health is not None
    # Neither branch exists locally, so there is nothing to compare
    assert [w.branch for w in backend.health.warnings] == []


def test_aggregate_records_corrupt_child_as_failure(tmp_path: Path) -> None:
    """A corrupt child mapping fails that child only."""
    layout, git, store = _setup(tmp_path)
    mapping_path(layout.children["frontend"]).write_text("{broken", encoding="utf-8")
    detector = RepoContextDetector(git)

    view = aggregate(
        detector.detect(layout.root), detector, store, max_workers=4, timeout_seconds=5
    )

    assert list(view.children) == ["backend"]
    assert [f.name for f in view.failures] == ["frontend"]
    assert "not valid JSON" in view.failures[0].error


def test_aggregate_records_broken_link_as_failure(tmp_path: Path) -> None:
    layout, git, store = _setup(tmp_path)
    (layout.root / ".speck-link-mobile").symlink_to(tmp_path / "no-such-repo")
    detector = RepoContextDetector(git)

    view = aggregate(
        detector.detect(layout.root), detector, store, max_workers=4, timeout_seconds=5
    )

    assert list(view.children) == ["backend", "frontend"]
    assert [f.name for f in view.failures] == ["mobile"]
    assert view.failures[0].repo_root is None


def test_aggregate_times_out_slow_child(tmp_path: Path) -> None:
    layout, git, _ = _setup(tmp_path)
    release = threading.Event()
    store = BlockingStore(layout.children["backend"], release)
    detector = RepoContextDetector(git)

    try:
        view = aggregate(
            detector.detect(layout.root), detector, store, max_workers=4, timeout_seconds=0.2
        )
    finally:
        release.set()

    assert list(view.children) == ["frontend"]
    assert [f.name for f in view.failures] == ["backend"]
    assert "timed out" in view.failures[0].error


def test_aggregate_refuses_child_context(tmp_path: Path) -> None:
    layout, git, store = _setup(tmp_path)
    detector = RepoContextDetector(git)

    with pytest.raises(ContextError, match="child repository"):
        aggregate(
            detector.detect(layout.children["backend"]),
            detector,
            store,
            max_workers=1,
            timeout_seconds=5,
        )


def test_count_statuses_in_lifecycle_order() -> None:
    entries = (
        make_entry("a", status=BranchStatus.MERGED),
        make_entry("b"),
        make_entry("c", status=BranchStatus.MERGED),
    )

    assert count_statuses(entries) == {"active": 1, "merged": 2}
    assert list(count_statuses(entries)) == ["active", "merged"]

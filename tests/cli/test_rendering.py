"""Tests for text rendering of listings, health reports and aggregated views."""

from pathlib import Path

from specstack.cli.rendering import (
    format_chain,
    format_counts,
    format_entry_line,
    render_aggregated,
    render_list_lines,
    render_status_lines,
)
from specstack.core.aggregation import AggregatedView, AggregationFailure, RepoSummary
from specstack.core.branch_store.types import BranchStatus
from specstack.core.graph import Chain, compute_chains
from specstack.core.health import HealthReport, HealthWarning, WarningKind
from specstack.core.repo_context import RepoMode
from tests.test_utils.builders import make_entry, make_mapping


def test_format_counts() -> None:
    assert format_counts({"active": 1, "merged": 1}) == "1 active, 1 merged"
    assert format_counts({}) == "no branches"


def test_format_chain() -> None:
    chain = Chain(spec_id="001-auth", base="main", branches=("A", "B"))

    assert format_chain(chain) == "main → A → B"


def test_format_entry_line_with_pull_request() -> None:
    numbered = make_entry("A", status=BranchStatus.SUBMITTED, pull_request_ref="12")
    url = make_entry("B", status=BranchStatus.SUBMITTED, pull_request_ref="https://x/pr/3")

    assert format_entry_line(numbered, styled=False) == "A (submitted) PR #12  base: main"
    assert format_entry_line(url, styled=False) == "B (submitted) PR https://x/pr/3  base: main"


def test_render_list_lines_groups_by_spec() -> None:
    mapping = make_mapping(
        make_entry("A"),
        make_entry("B", base="A"),
        make_entry("X", spec_id="002-billing"),
    )

    lines = render_list_lines(list(mapping.branches), compute_chains(mapping))

    assert lines[0] == "Spec: 001-auth"
    assert lines[1] == "  main → A → B"
    assert "" in lines
    assert "Spec: 002-billing" in lines


def test_render_status_lines_attaches_warnings_to_branches() -> None:
    entries = (make_entry("A"), make_entry("B", base="A"))
    report = HealthReport(
        repo_root=Path("/repo"),
        warnings=(
            HealthWarning(
                kind=WarningKind.MERGED_NOT_FLAGGED,
                branch="A",
                message="MERGED: A is merged into main but status is active",
                suggestion="Run: specstack update A --status merged",
            ),
            HealthWarning(kind=WarningKind.CHECK_SKIPPED, branch=None, message="general"),
        ),
    )

    lines = render_status_lines(entries, report)

    a_index = next(i for i, line in enumerate(lines) if line.startswith("A ("))
    assert lines[a_index + 1] == "  ⚠ MERGED: A is merged into main but status is active"
    assert lines[a_index + 2] == "    → Run: specstack update A --status merged"
    assert lines[-1] == "⚠ general"
    assert "All branches healthy." not in lines


def test_render_aggregated_tree() -> None:
    backend_entries = (
        make_entry("api-db", spec_id="007-multi-repo"),
        make_entry(
            "api-routes", base="api-db", spec_id="007-multi-repo", status=BranchStatus.MERGED
        ),
    )
    backend = RepoSummary(
        name="backend",
        repo_root=Path("/work/backend"),
        mode=RepoMode.MULTI_REPO_CHILD,
        parent_spec_id="007-multi-repo",
        entries=backend_entries,
        status_counts={"active": 1, "merged": 1},
        spec_ids=("007-multi-repo",),
        chains=(Chain("007-multi-repo", "main", ("api-db", "api-routes")),),
    )
    root = RepoSummary(
        name="root",
        repo_root=Path("/work/root"),
        mode=RepoMode.MULTI_REPO_ROOT,
        parent_spec_id=None,
        entries=(),
        status_counts={},
        spec_ids=(),
        chains=(),
    )
    view = AggregatedView(
        root=root,
        children={"backend": backend},
        failures=(AggregationFailure("mobile", None, "link is broken\nFix: relink"),),
    )

    text = render_aggregated(view)

    assert text.splitlines()[0] == "Branch Stack Status (Multi-Repo)"
    assert "Root (no specs): 0 branch(es) (no branches)" in text
    assert "Child: backend (parent spec 007-multi-repo): 2 branch(es) (1 active, 1 merged)" in text
    assert "[007-multi-repo] main → api-db → api-routes" in text
    assert "✗ mobile: link is broken" in text
    assert "Fix: relink" not in text


def test_render_aggregated_failure_without_message() -> None:
    view = AggregatedView(
        root=None,
        children={},
        failures=(AggregationFailure("mobile", Path("/work/mobile"), ""),),
    )

    text = render_aggregated(view)

    assert "✗ mobile: unknown error" in text

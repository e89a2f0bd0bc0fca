"""Tests for the read-only list, status and env commands."""

import json
from pathlib import Path

from click.testing import CliRunner

from specstack.cli.cli import cli
from specstack.core.branch_store.store import RealBranchStore
from specstack.core.branch_store.types import BranchStatus
from specstack.core.context import SpecStackContext
from specstack.core.git.fake import FakeGit
from tests.test_utils.builders import make_entry, make_mapping
from tests.test_utils.repo_setup import MultiRepo, build_context, make_multi_repo, standalone_git


def _standalone(repo: Path, current: str = "B", **git_kwargs) -> SpecStackContext:
    """main → A → B in 001-auth plus a billing branch, saved straight to disk."""
    RealBranchStore().save(
        repo,
        make_mapping(
            make_entry("A"),
            make_entry("B", base="A"),
            make_entry(
                "bill-1",
                spec_id="002-billing",
                status=BranchStatus.SUBMITTED,
                pull_request_ref="7",
            ),
        ),
    )
    git = standalone_git(repo, ["main", "A", "B", "bill-1"], current=current, **git_kwargs)
    return build_context(git, repo)


def _multi(tmp_path: Path) -> tuple[MultiRepo, FakeGit]:
    layout = make_multi_repo(tmp_path)
    repos = [layout.root, *layout.children.values()]
    git = FakeGit(
        repo_roots={r: r for r in repos},
        current_branches={layout.root: "007-multi-repo"},
        local_branches={r: ["main", "api-db", "ui-shell"] for r in repos},
    )
    store = RealBranchStore()
    store.save(
        layout.children["backend"],
        make_mapping(
            make_entry("api-db", spec_id="007-multi-repo", parent_spec_id="007-multi-repo")
        ),
    )
    store.save(
        layout.children["frontend"],
        make_mapping(make_entry("ui-shell", spec_id="007-multi-repo")),
    )
    return layout, git


# ============================================================================
# list
# ============================================================================


def test_list_shows_current_spec_chains(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["list"], obj=_standalone(repo))

    assert result.exit_code == 0, result.stderr
    assert "Spec: 001-auth" in result.stderr
    assert "main → A → B" in result.stderr
    assert "B (active)  base: A" in result.stderr
    assert "bill-1" not in result.stderr


def test_list_all_shows_every_spec(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["list", "--all"], obj=_standalone(repo))

    assert result.exit_code == 0, result.stderr
    assert "Spec: 002-billing" in result.stderr
    assert "bill-1 (submitted) PR #7  base: main" in result.stderr


def test_list_json(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["list", "--json"], obj=_standalone(repo))

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["spec_id"] == "001-auth"
    assert [b["name"] for b in data["branches"]] == ["A", "B"]
    assert data["chains"] == [{"spec_id": "001-auth", "base": "main", "branches": ["A", "B"]}]


def test_list_not_initialized(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["list"], obj=build_context(standalone_git(repo), repo))

    assert result.exit_code == 15
    assert "specstack create" in result.stderr


def test_list_json_error(repo: Path) -> None:
    """With --json, failures are reported as an ErrorResponse on stdout."""
    runner = CliRunner()

    result = runner.invoke(
        cli, ["list", "--json"], obj=build_context(standalone_git(repo), repo)
    )

    assert result.exit_code == 15
    data = json.loads(result.stdout)
    assert data["error_type"] == "NotInitializedError"
    assert data["exit_code"] == 15


def test_list_corrupt_mapping(repo: Path) -> None:
    (repo / ".speck").mkdir()
    (repo / ".speck" / "branches.json").write_text("[]", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["list"], obj=build_context(standalone_git(repo), repo))

    assert result.exit_code == 30


def test_list_all_aggregates_from_child(tmp_path: Path) -> None:
    layout, git = _multi(tmp_path)
    runner = CliRunner()
    ctx = build_context(git, layout.children["frontend"])

    result = runner.invoke(cli, ["list", "--all"], obj=ctx)

    assert result.exit_code == 0, result.stderr
    assert "Branch Stack Status (Multi-Repo)" in result.stderr
    assert "Root (no specs): 0 branch(es) (no branches)" in result.stderr
    assert "Child: backend (parent spec 007-multi-repo): 1 branch(es) (1 active)" in result.stderr
    assert "[007-multi-repo] main → api-db" in result.stderr
    assert "Child: frontend" in result.stderr


def test_list_all_json_reports_broken_child(tmp_path: Path) -> None:
    layout, git = _multi(tmp_path)
    (layout.root / ".speck-link-mobile").symlink_to(tmp_path / "missing")
    runner = CliRunner()

    result = runner.invoke(cli, ["list", "--all", "--json"], obj=build_context(git, layout.root))

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert sorted(data["children"]) == ["backend", "frontend"]
    assert data["children"]["backend"]["branch_count"] == 1
    assert [f["name"] for f in data["failures"]] == ["mobile"]


# ============================================================================
# status
# ============================================================================


def test_status_all_healthy(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["status"], obj=_standalone(repo))

    assert result.exit_code == 0, result.stderr
    assert f"Branch Stack Status ({repo})" in result.stderr
    assert "All branches healthy." in result.stderr


def test_status_flags_merged_branch(repo: Path) -> None:
    runner = CliRunner()
    ctx = _standalone(repo, merged={(repo, "A", "main")})

    result = runner.invoke(cli, ["status"], obj=ctx)

    assert result.exit_code == 0, result.stderr
    assert "⚠ MERGED: A is merged into main but status is active" in result.stderr
    assert "→ Run: specstack update A --status merged" in result.stderr
    assert "REBASE NEEDED" not in result.stderr


def test_status_suggests_rebase_once_base_marked_merged(repo: Path) -> None:
    RealBranchStore().save(
        repo,
        make_mapping(
            make_entry("A", status=BranchStatus.MERGED, pull_request_ref="3"),
            make_entry("B", base="A"),
        ),
    )
    git = standalone_git(repo, ["main", "A", "B"], current="B", merged={(repo, "A", "main")})
    runner = CliRunner()

    result = runner.invoke(cli, ["status"], obj=build_context(git, repo))

    assert result.exit_code == 0, result.stderr
    assert "⚠ REBASE NEEDED: B is stacked on A" in result.stderr
    assert "MERGED: A" not in result.stderr


def test_status_json(repo: Path) -> None:
    runner = CliRunner()
    ctx = _standalone(repo, merged={(repo, "A", "main")})

    result = runner.invoke(cli, ["status", "--json"], obj=ctx)

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert [w["kind"] for w in data["warnings"]] == ["merged-not-flagged"]
    assert len(data["branches"]) == 3


def test_status_git_failure_degrades_to_warning(repo: Path) -> None:
    runner = CliRunner()
    RealBranchStore().save(repo, make_mapping(make_entry("A")))
    git = FakeGit(repo_roots={repo: repo}, failing_repos={repo})
    ctx = build_context(git, repo)

    result = runner.invoke(cli, ["status"], obj=ctx)

    assert result.exit_code == 0, result.stderr
    assert "⚠ Could not check A against git" in result.stderr


def test_status_all_in_multi_repo(tmp_path: Path) -> None:
    layout, git = _multi(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["status", "--all"], obj=build_context(git, layout.root))

    assert result.exit_code == 0, result.stderr
    assert "Child: backend" in result.stderr
    assert "Child: frontend" in result.stderr


# ============================================================================
# env
# ============================================================================


def test_env_standalone(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["env"], obj=build_context(standalone_git(repo), repo))

    assert result.exit_code == 0, result.stderr
    assert "Mode: standalone" in result.stderr
    assert f"Repository: repo ({repo})" in result.stderr
    assert "Multi-Repo" not in result.stderr


def test_env_json_in_child(tmp_path: Path) -> None:
    layout, git = _multi(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli, ["env", "--json"], obj=build_context(git, layout.children["backend"])
    )

    assert result.exit_code == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["mode"] == "multi-repo-child"
    assert data["repo_name"] == "backend"
    assert data["speck_root"] == str(layout.root)
    assert data["parent_spec_id"] == "007-multi-repo"
    assert sorted(data["aggregate"]["children"]) == ["backend", "frontend"]


def test_env_outside_repository(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["env"], obj=build_context(FakeGit(), tmp_path))

    assert result.exit_code == 42
    assert "Not inside a git repository" in result.stderr


def test_env_broken_root_link(tmp_path: Path) -> None:
    child = tmp_path / "child"
    (child / ".speck").mkdir(parents=True)
    (child / ".speck" / "root").symlink_to(tmp_path / "gone")
    child = child.resolve()
    runner = CliRunner()

    result = runner.invoke(
        cli, ["env", "--json"], obj=build_context(FakeGit(repo_roots={child: child}), child)
    )

    assert result.exit_code == 42
    data = json.loads(result.stdout)
    assert data["error_type"] == "ContextError"
    assert "Fix:" in data["error"]

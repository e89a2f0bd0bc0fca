"""Tests for the import command."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from specstack.cli.cli import cli
from specstack.cli.commands.import_cmd import parse_batch_choice
from specstack.core.branch_store.store import RealBranchStore
from specstack.core.context import SpecStackContext
from specstack.core.errors import ValidationError
from specstack.core.importer import ImportChoice
from tests.test_utils.repo_setup import build_context, standalone_git


def _context(repo: Path) -> SpecStackContext:
    git = standalone_git(
        repo,
        ["main", "001-auth-db", "001-auth-api", "scratch"],
        upstreams={
            (repo, "001-auth-db"): "origin/main",
            (repo, "001-auth-api"): "001-auth-db",
        },
    )
    return build_context(git, repo)


def _tracked(repo: Path) -> dict[str, tuple[str, str]]:
    mapping = RealBranchStore().load(repo)
    if mapping is None:
        return {}
    return {e.name: (e.spec_id, e.base_branch) for e in mapping.branches}


def test_import_inferable_branches(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["import", "001-*"], obj=_context(repo))

    assert result.exit_code == 0, result.stderr
    assert "✓ 001-auth-db → 001-auth (base: main)" in result.stderr
    assert "✓ 001-auth-api → 001-auth (base: 001-auth-db)" in result.stderr
    assert "Imported: 2  Skipped: 0" in result.stderr
    assert _tracked(repo) == {
        "001-auth-db": ("001-auth", "main"),
        "001-auth-api": ("001-auth", "001-auth-db"),
    }


def test_import_twice_has_nothing_to_import(repo: Path) -> None:
    runner = CliRunner()
    ctx = _context(repo)
    runner.invoke(cli, ["import", "001-*"], obj=ctx)

    result = runner.invoke(cli, ["import", "001-*"], obj=ctx)

    assert result.exit_code == 16
    assert "No untracked branches matching '001-*'" in result.stderr
    assert len(_tracked(repo)) == 2


def test_import_prompt_payload_when_undecidable(repo: Path) -> None:
    """Undecidable branches produce an import-prompt on stderr and exit 3."""
    runner = CliRunner()

    result = runner.invoke(cli, ["import"], obj=_context(repo))

    assert result.exit_code == 3
    payload = json.loads(result.stderr)
    assert payload["type"] == "import-prompt"
    assert payload["availableSpecs"] == ["001-auth", "002-billing"]
    assert payload["branches"] == [
        {
            "name": "scratch",
            "upstream": None,
            "inferredBase": "main",
            "reason": "no upstream branch to infer a base from",
        }
    ]
    assert _tracked(repo) == {}


def test_import_with_batch_answer(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["import", "--batch", "scratch:002-billing:001-auth-db"],
        obj=_context(repo),
    )

    assert result.exit_code == 0, result.stderr
    assert "Imported: 3  Skipped: 0" in result.stderr
    assert _tracked(repo)["scratch"] == ("002-billing", "001-auth-db")


def test_import_with_invalid_batch_value(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["import", "--batch", "scratch"], obj=_context(repo))

    assert result.exit_code == 10
    assert "Invalid --batch value" in result.stderr


def test_import_batch_for_unknown_branch(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["import", "--batch", "ghost:001-auth"], obj=_context(repo)
    )

    assert result.exit_code == 11


def test_import_batch_with_missing_base(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["import", "--batch", "scratch:001-auth:does-not-exist"],
        obj=_context(repo),
    )

    assert result.exit_code == 11
    assert "Base branch 'does-not-exist' does not exist" in result.stderr
    assert _tracked(repo) == {}


def test_import_interactive_with_missing_base(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["import", "--interactive"],
        obj=_context(repo),
        input="002-billing\nnowhere\n",
    )

    assert result.exit_code == 11
    assert _tracked(repo) == {}


def test_import_interactive_choice(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["import", "--interactive"],
        obj=_context(repo),
        input="002-billing\nmain\n",
    )

    assert result.exit_code == 0, result.stderr
    assert "Branch: scratch" in result.stderr
    assert _tracked(repo)["scratch"] == ("002-billing", "main")


def test_import_interactive_skip(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["import", "--interactive"], obj=_context(repo), input="skip\n")

    assert result.exit_code == 0, result.stderr
    assert "⊘ Skipped scratch" in result.stderr
    assert "Imported: 2  Skipped: 1" in result.stderr
    assert "scratch" not in _tracked(repo)


def test_parse_batch_choice() -> None:
    assert parse_batch_choice("x:001-auth") == ("x", ImportChoice(spec_id="001-auth"))
    assert parse_batch_choice("x:001-auth:main") == (
        "x",
        ImportChoice(spec_id="001-auth", base="main"),
    )


@pytest.mark.parametrize("value", ["x", "x:", ":001-auth", "a:b:c:d"])
def test_parse_batch_choice_rejects_malformed(value: str) -> None:
    with pytest.raises(ValidationError):
        parse_batch_choice(value)

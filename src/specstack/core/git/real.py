"""Production Git implementation using subprocess.

This module provides the real Git implementation that executes actual git
commands via subprocess. Every command is time-bounded.
"""

import subprocess
from pathlib import Path

from specstack.core.errors import GitAdapterError
from specstack.core.git.abc import Git
from specstack.core.subprocess import run_subprocess_with_context

DEFAULT_TIMEOUT_SECONDS = 5.0

# ============================================================================
# Production Implementation
# ============================================================================


class RealGit(Git):
    """Production implementation using subprocess.

    All git operations execute actual git commands via subprocess.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout_seconds

    def _probe(self, cmd: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
        """Run a query whose non-zero exit is an answer, not a failure."""
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                check=False,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise GitAdapterError(
                f"Timed out after {self._timeout}s running: {' '.join(cmd)}"
            ) from e
        except FileNotFoundError as e:
            raise GitAdapterError(f"Command not found: {cmd[0]}") from e

    def get_repo_root(self, cwd: Path) -> Path | None:
        if not cwd.exists():
            return None
        result = self._probe(["git", "rev-parse", "--show-toplevel"], cwd)
        if result.returncode != 0:
            return None
        return Path(result.stdout.strip())

    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch."""
        result = self._probe(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd)
        if result.returncode != 0:
            return None

        branch = result.stdout.strip()
        if branch == "HEAD":
            return None

        return branch

    def get_trunk_branch(self, repo_root: Path) -> str:
        """Get the trunk branch name for the repository.

        Detects trunk by checking git's remote HEAD reference. Falls back to
        checking for existence of common trunk branch names if detection fails.
        """
        # 1. Try git symbolic-ref to detect default branch
        result = self._probe(["git", "symbolic-ref", "refs/remotes/origin/HEAD"], repo_root)
        if result.returncode == 0:
            remote_head = result.stdout.strip()
            if remote_head.startswith("refs/remotes/origin/"):
                return remote_head.replace("refs/remotes/origin/", "")

        # 2. Fallback: check which common trunk branch exists
        for candidate in ["main", "master"]:
            if self.branch_exists(repo_root, candidate):
                return candidate

        # 3. Final fallback: 'main'
        return "main"

    def list_local_branches(self, repo_root: Path) -> list[str]:
        result = run_subprocess_with_context(
            ["git", "for-each-ref", "--format=%(refname:short)", "refs/heads/"],
            operation_context="list local branches",
            cwd=repo_root,
            timeout=self._timeout,
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        result = self._probe(
            ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], repo_root
        )
        return result.returncode == 0

    def is_merged_into(self, repo_root: Path, branch: str, base: str) -> bool:
        result = self._probe(["git", "merge-base", "--is-ancestor", branch, base], repo_root)
        # Exit 1 means "not an ancestor"; anything else is a real failure
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitAdapterError(
            f"Failed to check whether '{branch}' is merged into '{base}'\n"
            f"stderr: {result.stderr.strip()}"
        )

    def get_upstream(self, repo_root: Path, branch: str) -> str | None:
        result = self._probe(
            ["git", "rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{branch}@{{upstream}}"],
            repo_root,
        )
        if result.returncode != 0:
            return None
        upstream = result.stdout.strip()
        return upstream or None

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        result = run_subprocess_with_context(
            ["git", "status", "--porcelain"],
            operation_context="check for uncommitted changes",
            cwd=cwd,
            timeout=self._timeout,
        )
        return bool(result.stdout.strip())

    def create_branch(self, repo_root: Path, branch: str, start_point: str) -> None:
        run_subprocess_with_context(
            ["git", "branch", branch, start_point],
            operation_context=f"create branch '{branch}' from '{start_point}'",
            cwd=repo_root,
            timeout=self._timeout,
        )

    def checkout_branch(self, repo_root: Path, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "checkout", branch],
            operation_context=f"checkout branch '{branch}'",
            cwd=repo_root,
            timeout=self._timeout,
        )

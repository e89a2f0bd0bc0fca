"""Fake git operations for testing.

FakeGit is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.
"""

from pathlib import Path

from specstack.core.errors import GitAdapterError
from specstack.core.git.abc import Git


class FakeGit(Git):
    """In-memory fake implementation of git operations.

    State Management:
    -----------------
    This fake maintains mutable state to simulate git's stateful behavior.
    Operations like create_branch and checkout_branch modify internal state.
    State changes are visible to subsequent method calls within the same test.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty dicts).

    Mutation Tracking:
    -----------------
    Mutating calls are recorded in read-only properties for assertions:
    - created_branches: (repo_root, branch, start_point) tuples
    - checked_out_branches: (repo_root, branch) tuples
    """

    def __init__(
        self,
        *,
        repo_roots: dict[Path, Path] | None = None,
        current_branches: dict[Path, str | None] | None = None,
        local_branches: dict[Path, list[str]] | None = None,
        trunk_branches: dict[Path, str] | None = None,
        upstreams: dict[tuple[Path, str], str] | None = None,
        merged: set[tuple[Path, str, str]] | None = None,
        dirty_paths: set[Path] | None = None,
        failing_repos: set[Path] | None = None,
    ) -> None:
        """Create FakeGit with pre-configured state.

        Args:
            repo_roots: Mapping of any path inside a repo -> its root. Paths not
                listed resolve to the nearest listed ancestor.
            current_branches: Mapping of repo root -> checked-out branch
            local_branches: Mapping of repo root -> local branch names
            trunk_branches: Mapping of repo root -> trunk branch (default "main")
            upstreams: Mapping of (repo root, branch) -> upstream ref
            merged: Set of (repo root, branch, base) triples where branch is merged
            dirty_paths: Repo roots with uncommitted changes
            failing_repos: Repo roots where every query raises GitAdapterError
        """
        self._repo_roots = repo_roots or {}
        self._current_branches = current_branches or {}
        self._local_branches = {k: list(v) for k, v in (local_branches or {}).items()}
        self._trunk_branches = trunk_branches or {}
        self._upstreams = upstreams or {}
        self._merged = merged or set()
        self._dirty_paths = dirty_paths or set()
        self._failing_repos = failing_repos or set()

        self._created_branches: list[tuple[Path, str, str]] = []
        self._checked_out_branches: list[tuple[Path, str]] = []

    @property
    def created_branches(self) -> list[tuple[Path, str, str]]:
        """Read-only access to created branches for test assertions."""
        return self._created_branches

    @property
    def checked_out_branches(self) -> list[tuple[Path, str]]:
        """Read-only access to checked out branches for test assertions."""
        return self._checked_out_branches

    def _check_failing(self, repo_root: Path) -> None:
        if repo_root in self._failing_repos:
            raise GitAdapterError(f"Simulated git failure in {repo_root}")

    def get_repo_root(self, cwd: Path) -> Path | None:
        for candidate in (cwd, *cwd.parents):
            if candidate in self._repo_roots:
                return self._repo_roots[candidate]
        return None

    def get_current_branch(self, cwd: Path) -> str | None:
        root = self.get_repo_root(cwd) or cwd
        self._check_failing(root)
        return self._current_branches.get(root)

    def get_trunk_branch(self, repo_root: Path) -> str:
        self._check_failing(repo_root)
        return self._trunk_branches.get(repo_root, "main")

    def list_local_branches(self, repo_root: Path) -> list[str]:
        self._check_failing(repo_root)
        return list(self._local_branches.get(repo_root, []))

    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        self._check_failing(repo_root)
        return branch in self._local_branches.get(repo_root, [])

    def is_merged_into(self, repo_root: Path, branch: str, base: str) -> bool:
        self._check_failing(repo_root)
        return (repo_root, branch, base) in self._merged

    def get_upstream(self, repo_root: Path, branch: str) -> str | None:
        self._check_failing(repo_root)
        return self._upstreams.get((repo_root, branch))

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        root = self.get_repo_root(cwd) or cwd
        self._check_failing(root)
        return root in self._dirty_paths

    def create_branch(self, repo_root: Path, branch: str, start_point: str) -> None:
        """Create a new branch (mutates internal state)."""
        self._check_failing(repo_root)
        branches = self._local_branches.setdefault(repo_root, [])
        if branch in branches:
            raise GitAdapterError(f"fatal: a branch named '{branch}' already exists")
        branches.append(branch)
        self._created_branches.append((repo_root, branch, start_point))

    def checkout_branch(self, repo_root: Path, branch: str) -> None:
        """Checkout a branch (mutates internal state)."""
        self._check_failing(repo_root)
        self._current_branches[repo_root] = branch
        self._checked_out_branches.append((repo_root, branch))

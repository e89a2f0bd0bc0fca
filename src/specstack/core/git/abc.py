"""High-level git operations interface.

This module provides a narrow abstraction over the git commands specstack
needs, making the branch tracking logic testable without real repositories.

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation using subprocess
- FakeGit: In-memory implementation for tests
"""

from abc import ABC, abstractmethod
from pathlib import Path


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    Query methods raise GitAdapterError when git fails or times out; callers
    decide whether the missing information is required or only advisory.
    """

    @abstractmethod
    def get_repo_root(self, cwd: Path) -> Path | None:
        """Get the top-level directory of the repository containing cwd.

        Returns None when cwd is not inside a git repository.
        """
        ...

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch (None on detached HEAD)."""
        ...

    @abstractmethod
    def get_trunk_branch(self, repo_root: Path) -> str:
        """Get the trunk branch name for the repository.

        Detects trunk by checking git's remote HEAD reference. Falls back to
        checking for existence of common trunk branch names if detection fails.

        Args:
            repo_root: Path to the repository root

        Returns:
            Trunk branch name (e.g., 'main', 'master')
        """
        ...

    @abstractmethod
    def list_local_branches(self, repo_root: Path) -> list[str]:
        """List all local branch names in the repository."""
        ...

    @abstractmethod
    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        """Check whether a local branch with this name exists."""
        ...

    @abstractmethod
    def is_merged_into(self, repo_root: Path, branch: str, base: str) -> bool:
        """Check whether every commit of `branch` is reachable from `base`.

        Args:
            repo_root: Path to the repository root
            branch: Branch that may have been merged
            base: Branch it would have been merged into

        Returns:
            True if `branch` is an ancestor of `base`
        """
        ...

    @abstractmethod
    def get_upstream(self, repo_root: Path, branch: str) -> str | None:
        """Get the upstream-tracking ref of a branch (e.g. 'origin/feature').

        Returns None when the branch has no upstream configured.
        """
        ...

    @abstractmethod
    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Check if the working tree has staged, modified or untracked changes."""
        ...

    @abstractmethod
    def create_branch(self, repo_root: Path, branch: str, start_point: str) -> None:
        """Create a new branch without checking it out.

        Args:
            repo_root: Working directory to run command in
            branch: Name of the branch to create
            start_point: Commit/branch to base the new branch on
        """
        ...

    @abstractmethod
    def checkout_branch(self, repo_root: Path, branch: str) -> None:
        """Checkout a branch in the given directory."""
        ...

"""Application context with dependency injection."""

import logging
from dataclasses import dataclass
from pathlib import Path

from specstack.core.branch_store.store import BranchStore, FakeBranchStore, RealBranchStore
from specstack.core.config import LoadedConfig, load_config
from specstack.core.errors import GitAdapterError
from specstack.core.git.abc import Git
from specstack.core.git.fake import FakeGit
from specstack.core.git.real import RealGit
from specstack.core.repo_context import RepoContextDetector
from specstack.core.time.abc import Time
from specstack.core.time.fake import FakeTime
from specstack.core.time.real import RealTime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpecStackContext:
    """Immutable context holding all dependencies for specstack operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    git: Git
    store: BranchStore
    time: Time
    detector: RepoContextDetector
    cwd: Path  # Current working directory at CLI invocation
    config: LoadedConfig

    @staticmethod
    def for_test(
        git: Git | None = None,
        store: BranchStore | None = None,
        time: Time | None = None,
        cwd: Path | None = None,
        config: LoadedConfig | None = None,
    ) -> "SpecStackContext":
        """Create test context with optional pre-configured dependencies.

        Args:
            git: Optional Git implementation. If None, creates empty FakeGit.
            store: Optional BranchStore. If None, creates empty FakeBranchStore.
            time: Optional Time implementation. If None, creates FakeTime.
            cwd: Optional current working directory. If None, uses Path("/test/default/cwd").
            config: Optional LoadedConfig. If None, uses defaults.

        Returns:
            SpecStackContext with provided values and test defaults

        Example:
            >>> git = FakeGit(repo_roots={repo: repo}, local_branches={repo: ["main"]})
            >>> ctx = SpecStackContext.for_test(git=git, cwd=repo)
        """
        resolved_git = git if git is not None else FakeGit()
        return SpecStackContext(
            git=resolved_git,
            store=store if store is not None else FakeBranchStore(),
            time=time if time is not None else FakeTime(),
            detector=RepoContextDetector(resolved_git),
            cwd=cwd if cwd is not None else Path("/test/default/cwd"),
            config=config if config is not None else LoadedConfig.defaults(),
        )


def create_context() -> SpecStackContext:
    """Create production context with real implementations.

    Called once at CLI entry point to create the context for the entire
    command execution.

    Returns:
        SpecStackContext with real implementations
    """
    # 1. Capture cwd (no deps)
    cwd = Path.cwd()

    # 2. Locate the repository with default timeouts so config can be read
    bootstrap_git = RealGit()
    try:
        repo_root = bootstrap_git.get_repo_root(cwd)
    except GitAdapterError as e:
        logger.warning("Could not locate repository root: %s", e)
        repo_root = None

    # 3. Load repo config (or defaults if no repo)
    config = load_config(repo_root)

    # 4. Create integrations with configured timeouts
    git: Git = RealGit(timeout_seconds=config.git_timeout_seconds)

    return SpecStackContext(
        git=git,
        store=RealBranchStore(),
        time=RealTime(),
        detector=RepoContextDetector(git),
        cwd=cwd,
        config=config,
    )

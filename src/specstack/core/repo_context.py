"""Repository context detection.

A repository is in one of three modes:

- standalone: no `.speck/root` link and no child links
- multi-repo-root: the shared specification root; it holds one
  `.speck-link-<name>` symlink per child repository
- multi-repo-child: `.speck/root` is a symlink to the specification root

Detection results are cached per path on a RepoContextDetector instance, which
is owned by the command context rather than held process-wide.
"""

import errno
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from specstack.core.branch_store.types import is_valid_spec_id
from specstack.core.errors import ContextError, GitAdapterError
from specstack.core.git.abc import Git

logger = logging.getLogger(__name__)

ROOT_LINK_RELATIVE = Path(".speck") / "root"
CHILD_LINK_PREFIX = ".speck-link-"


class RepoMode(Enum):
    STANDALONE = "standalone"
    MULTI_REPO_ROOT = "multi-repo-root"
    MULTI_REPO_CHILD = "multi-repo-child"


@dataclass(frozen=True)
class RepoContext:
    """Where a repository sits in a (possibly multi-repo) spec layout.

    Attributes:
        mode: Operating mode of the repository
        repo_root: Top-level directory of the repository
        speck_root: Directory holding the shared specs (repo_root unless child)
        specs_dir: `<speck_root>/specs`
        parent_spec_id: Spec checked out at the root (children only)
        repo_name: Short name; for children, the name of the root's link
    """

    mode: RepoMode
    repo_root: Path
    speck_root: Path
    specs_dir: Path
    parent_spec_id: str | None
    repo_name: str

    @property
    def is_multi_repo(self) -> bool:
        return self.mode is not RepoMode.STANDALONE


@dataclass(frozen=True)
class ChildRepos:
    """Children linked from a specification root.

    Attributes:
        found: child name -> resolved repository path
        broken: child name -> reason the link could not be followed
    """

    found: dict[str, Path]
    broken: dict[str, str]


def is_spec_root(path: Path) -> bool:
    return path.is_dir() and ((path / "specs").is_dir() or (path / ".speck").is_dir())


def _resolve_link(link: Path, description: str) -> Path:
    """Resolve a symlink strictly, translating OS failures to ContextError."""
    try:
        return link.resolve(strict=True)
    except RuntimeError as e:
        # Symlink loops raise RuntimeError on older interpreters
        raise ContextError(
            f"Multi-repo configuration broken: {description} contains a circular reference\n"
            f"Fix: rm {link} and re-create the link to a valid spec root"
        ) from e
    except OSError as e:
        if e.errno == errno.ELOOP:
            raise ContextError(
                f"Multi-repo configuration broken: {description} contains a circular reference\n"
                f"Fix: rm {link} and re-create the link to a valid spec root"
            ) from e
        try:
            target = str(link.readlink())
        except OSError:
            target = "unknown"
        raise ContextError(
            f"Multi-repo configuration broken: {description} → {target} (does not exist)\n"
            f"Fix:\n"
            f"  1. Remove broken symlink: rm {link}\n"
            f"  2. Link to the correct spec root location"
        ) from e


def find_child_repos(speck_root: Path) -> ChildRepos:
    """Enumerate `.speck-link-<name>` symlinks at a specification root."""
    found: dict[str, Path] = {}
    broken: dict[str, str] = {}
    if not speck_root.is_dir():
        return ChildRepos(found=found, broken=broken)

    for link in sorted(speck_root.iterdir()):
        if not link.name.startswith(CHILD_LINK_PREFIX) or not link.is_symlink():
            continue
        name = link.name[len(CHILD_LINK_PREFIX) :]
        try:
            target = _resolve_link(link, link.name)
        except ContextError as e:
            logger.warning("Skipping child link %s: %s", link.name, e)
            broken[name] = str(e)
            continue
        if not target.is_dir():
            broken[name] = f"{link.name} → {target} is not a directory"
            continue
        found[name] = target
    return ChildRepos(found=found, broken=broken)


class RepoContextDetector:
    """Detect and cache the RepoContext for working directories.

    Call invalidate() after changing `.speck/root` or child links.
    """

    def __init__(self, git: Git) -> None:
        self._git = git
        self._cache: dict[Path, RepoContext] = {}
        self._lock = threading.Lock()

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()

    def detect(self, cwd: Path) -> RepoContext:
        """Determine the mode of the repository containing `cwd`.

        Raises:
            ContextError: cwd is not in a repository, or the root link is
                circular, dangling, or points at something that is not a
                spec root
        """
        key = cwd.resolve()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        context = self._detect_uncached(key)
        with self._lock:
            self._cache[key] = context
        return context

    def _detect_uncached(self, cwd: Path) -> RepoContext:
        repo_root = self._git.get_repo_root(cwd)
        if repo_root is None:
            raise ContextError(
                f"Not inside a git repository: {cwd}\n"
                f"Run specstack from within a repository."
            )

        root_link = repo_root / ROOT_LINK_RELATIVE
        if root_link.is_symlink():
            return self._detect_child(repo_root, root_link)

        if root_link.exists():
            logger.warning(
                "%s exists but is not a symlink; falling back to standalone mode. "
                "To enable multi-repo, move it aside and link to the spec root.",
                root_link,
            )

        children = find_child_repos(repo_root)
        mode = (
            RepoMode.MULTI_REPO_ROOT if (children.found or children.broken) else RepoMode.STANDALONE
        )
        logger.debug("Detected %s at %s", mode.value, repo_root)
        return RepoContext(
            mode=mode,
            repo_root=repo_root,
            speck_root=repo_root,
            specs_dir=repo_root / "specs",
            parent_spec_id=None,
            repo_name=repo_root.name,
        )

    def _detect_child(self, repo_root: Path, root_link: Path) -> RepoContext:
        speck_root = _resolve_link(root_link, ".speck/root")
        if not is_spec_root(speck_root):
            raise ContextError(
                f"Multi-repo configuration broken: .speck/root → {speck_root} "
                f"is not a spec root (no specs/ or .speck/ directory)\n"
                f"Fix: rm {root_link} and link to the directory that holds specs/"
            )

        logger.debug("Detected multi-repo child %s → %s", repo_root, speck_root)
        return RepoContext(
            mode=RepoMode.MULTI_REPO_CHILD,
            repo_root=repo_root,
            speck_root=speck_root,
            specs_dir=speck_root / "specs",
            parent_spec_id=self._read_parent_spec_id(speck_root),
            repo_name=self._child_name(repo_root, speck_root),
        )

    def _read_parent_spec_id(self, speck_root: Path) -> str | None:
        try:
            branch = self._git.get_current_branch(speck_root)
        except GitAdapterError as e:
            logger.warning("Could not read current branch of spec root %s: %s", speck_root, e)
            return None
        if branch is not None and is_valid_spec_id(branch):
            return branch
        return None

    def _child_name(self, repo_root: Path, speck_root: Path) -> str:
        resolved_root = repo_root.resolve()
        for name, path in find_child_repos(speck_root).found.items():
            if path == resolved_root:
                return name
        return repo_root.name

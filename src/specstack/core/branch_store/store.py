"""Branch store interface and implementations."""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from specstack.core.branch_store.ops import empty_mapping, find_duplicate_names, with_branches
from specstack.core.branch_store.schema import parse_document, serialize_mapping
from specstack.core.branch_store.types import BranchMapping
from specstack.core.errors import DuplicateBranchError
from specstack.core.graph import validate_acyclic

logger = logging.getLogger(__name__)

SPECK_DIR_NAME = ".speck"
BRANCHES_FILE_NAME = "branches.json"


def mapping_path(repo_root: Path) -> Path:
    return repo_root / SPECK_DIR_NAME / BRANCHES_FILE_NAME


class BranchStore(ABC):
    """Interface for reading and writing a repository's branch mapping."""

    @abstractmethod
    def load(self, repo_root: Path) -> BranchMapping | None:
        """Load the mapping, migrating older known schema versions in memory.

        Returns None when the repository has no mapping file yet.
        """
        pass

    @abstractmethod
    def _write(self, repo_root: Path, mapping: BranchMapping) -> None:
        pass

    def save(self, repo_root: Path, mapping: BranchMapping) -> BranchMapping:
        """Persist the mapping with a rebuilt spec index.

        Returns the mapping exactly as written.
        """
        duplicates = find_duplicate_names(mapping)
        if duplicates:
            raise DuplicateBranchError(
                f"Refusing to save: branch(es) tracked more than once: {', '.join(duplicates)}"
            )
        normalized = with_branches(mapping, mapping.branches)
        self._write(repo_root, normalized)
        return normalized

    def mutate(
        self,
        repo_root: Path,
        fn: Callable[[BranchMapping], BranchMapping],
    ) -> BranchMapping:
        """Load (or start empty), apply `fn`, validate, then save.

        Nothing is written if `fn` or validation raises.
        """
        current = self.load(repo_root)
        if current is None:
            current = empty_mapping()
        updated = fn(current)
        validate_acyclic(updated)
        return self.save(repo_root, updated)


class RealBranchStore(BranchStore):
    """Filesystem-backed store at `<repo>/.speck/branches.json`."""

    def load(self, repo_root: Path) -> BranchMapping | None:
        path = mapping_path(repo_root)
        if not path.exists():
            return None
        text = path.read_text(encoding="utf-8")
        return parse_document(text, source=str(path))

    def _write(self, repo_root: Path, mapping: BranchMapping) -> None:
        path = mapping_path(repo_root)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Temp file must live in the target directory so os.replace stays atomic
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{BRANCHES_FILE_NAME}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(serialize_mapping(mapping))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d branch entries to %s", len(mapping.branches), path)


class FakeBranchStore(BranchStore):
    """In-memory branch store for testing.

    Documents are held serialized so loads exercise the same parsing and
    migration path as the real store.
    """

    def __init__(self, documents: dict[Path, str] | None = None) -> None:
        """Create FakeBranchStore.

        Args:
            documents: Mapping of repo root -> raw branches.json text
        """
        self._documents = dict(documents or {})
        self._save_count = 0

    @property
    def save_count(self) -> int:
        """Number of successful writes, for test assertions."""
        return self._save_count

    def document(self, repo_root: Path) -> str | None:
        return self._documents.get(repo_root)

    def load(self, repo_root: Path) -> BranchMapping | None:
        text = self._documents.get(repo_root)
        if text is None:
            return None
        return parse_document(text)

    def _write(self, repo_root: Path, mapping: BranchMapping) -> None:
        self._documents[repo_root] = serialize_mapping(mapping)
        self._save_count += 1

"""Error taxonomy for specstack operations.

Every error carries the process exit code the CLI uses for it, so scripting
callers can branch on the failure class:

- 1x: validation errors (bad input, rejected before any write)
- 2x: structural errors (the dependency graph would become invalid)
- 3x: consistency errors (the persisted document cannot be trusted)
- 4x: environment errors (git, working tree, repository layout)
- 3:  import needs caller-supplied disambiguation
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from specstack.core.importer import DisambiguationRequest

EXIT_DISAMBIGUATION_REQUIRED = 3

EXIT_VALIDATION = 10
EXIT_NOT_FOUND = 11
EXIT_INVALID_TRANSITION = 12
EXIT_MISSING_PR_REF = 13
EXIT_HAS_DEPENDENTS = 14
EXIT_NOT_INITIALIZED = 15
EXIT_NOTHING_TO_IMPORT = 16

EXIT_STRUCTURAL = 20
EXIT_CYCLE = 21
EXIT_DUPLICATE = 22
EXIT_CROSS_REPO_BASE = 23

EXIT_CORRUPT_MAPPING = 30
EXIT_SCHEMA = 31

EXIT_GIT_ADAPTER = 40
EXIT_DIRTY_WORKING_TREE = 41
EXIT_CONTEXT = 42


class SpecStackError(Exception):
    """Base class for all errors surfaced to the command line."""

    exit_code: int = 1


# ============================================================================
# Validation errors
# ============================================================================


class ValidationError(SpecStackError):
    exit_code = EXIT_VALIDATION


class InvalidBranchName(ValidationError):
    pass


class InvalidSpecId(ValidationError):
    pass


class InvalidStatus(ValidationError):
    pass


class SpecNotFoundError(ValidationError):
    exit_code = EXIT_NOT_FOUND


class BaseBranchNotFound(ValidationError):
    exit_code = EXIT_NOT_FOUND


class BranchNotFound(ValidationError):
    exit_code = EXIT_NOT_FOUND


class InvalidTransition(ValidationError):
    exit_code = EXIT_INVALID_TRANSITION


class MissingPullRequestRef(ValidationError):
    exit_code = EXIT_MISSING_PR_REF


class HasDependentsError(ValidationError):
    exit_code = EXIT_HAS_DEPENDENTS

    def __init__(self, message: str, dependents: list[str]) -> None:
        super().__init__(message)
        self.dependents = dependents


class NotInitializedError(ValidationError):
    exit_code = EXIT_NOT_INITIALIZED


class NothingToImportError(ValidationError):
    exit_code = EXIT_NOTHING_TO_IMPORT


# ============================================================================
# Structural errors
# ============================================================================


class StructuralError(SpecStackError):
    exit_code = EXIT_STRUCTURAL


class CycleError(StructuralError):
    """A base-branch change would make the dependency graph cyclic.

    `path` is the ordered cycle, first and last element equal
    (e.g. ["A", "C", "B", "A"]).
    """

    exit_code = EXIT_CYCLE

    def __init__(self, message: str, path: list[str]) -> None:
        super().__init__(message)
        self.path = path


class DuplicateBranchError(StructuralError):
    exit_code = EXIT_DUPLICATE


class CrossRepoBaseError(StructuralError):
    exit_code = EXIT_CROSS_REPO_BASE


# ============================================================================
# Consistency errors
# ============================================================================


class ConsistencyError(SpecStackError):
    exit_code = EXIT_CORRUPT_MAPPING


class CorruptMappingError(ConsistencyError):
    exit_code = EXIT_CORRUPT_MAPPING


class SchemaError(ConsistencyError):
    exit_code = EXIT_SCHEMA


# ============================================================================
# Environment errors
# ============================================================================


class SpecStackEnvironmentError(SpecStackError):
    exit_code = EXIT_GIT_ADAPTER


class GitAdapterError(SpecStackEnvironmentError):
    exit_code = EXIT_GIT_ADAPTER


class DirtyWorkingTreeError(SpecStackEnvironmentError):
    exit_code = EXIT_DIRTY_WORKING_TREE


class ContextError(SpecStackEnvironmentError):
    exit_code = EXIT_CONTEXT


# ============================================================================
# Import disambiguation
# ============================================================================


class DisambiguationRequired(SpecStackError):
    """Import found branches whose spec or base could not be inferred."""

    exit_code = EXIT_DISAMBIGUATION_REQUIRED

    def __init__(self, message: str, requests: "list[DisambiguationRequest]") -> None:
        super().__init__(message)
        self.requests = requests

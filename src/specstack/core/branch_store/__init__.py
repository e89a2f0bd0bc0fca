"""Persistence of tracked branches per repository."""

from specstack.core.branch_store.schema import CURRENT_SCHEMA_VERSION
from specstack.core.branch_store.store import (
    BranchStore,
    FakeBranchStore,
    RealBranchStore,
    mapping_path,
)
from specstack.core.branch_store.types import BranchEntry, BranchMapping, BranchStatus

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "BranchEntry",
    "BranchMapping",
    "BranchStatus",
    "BranchStore",
    "FakeBranchStore",
    "RealBranchStore",
    "mapping_path",
]

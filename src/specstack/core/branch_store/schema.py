"""Versioned on-disk schema for `.speck/branches.json`.

Each known schema version has its own pydantic document model. Loading
validates against the model for the document's declared version and then
applies one migration function per version gap until the current version is
reached. Versions this build does not know fail closed.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from specstack.core.branch_store.types import (
    BranchEntry,
    BranchMapping,
    BranchStatus,
)
from specstack.core.errors import CorruptMappingError, SchemaError

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = "1.1.0"

_SPEC_ID_REGEX = r"^\d{3}-[a-z0-9-]+$"
_BRANCH_NAME_REGEX = r"^[A-Za-z0-9._/-]+$"

StatusLiteral = Literal["active", "submitted", "merged", "abandoned"]


def _check_timestamps(created_at: str, updated_at: str) -> None:
    """Both must be ISO 8601 and createdAt must not be later than updatedAt."""
    try:
        created = datetime.fromisoformat(created_at)
        updated = datetime.fromisoformat(updated_at)
    except ValueError as e:
        raise ValueError(f"timestamps must be ISO 8601: {e}") from e
    if (created.tzinfo is None) != (updated.tzinfo is None):
        raise ValueError("createdAt and updatedAt must both carry a UTC offset or neither")
    if created > updated:
        raise ValueError(f"createdAt {created_at} is later than updatedAt {updated_at}")


# ============================================================================
# Version 1.0.0 (no parentSpecId; pull request stored as a number under "pr")
# ============================================================================


class BranchEntryV1_0(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(pattern=_BRANCH_NAME_REGEX)
    base_branch: str = Field(alias="baseBranch", min_length=1)
    spec_id: str = Field(alias="specId", pattern=_SPEC_ID_REGEX)
    status: StatusLiteral
    pr: int | None = None
    pull_request_ref: str | None = Field(default=None, alias="pullRequestRef")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @model_validator(mode="after")
    def timestamps_ordered(self) -> Self:
        _check_timestamps(self.created_at, self.updated_at)
        return self


class BranchMappingV1_0(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_version: str = Field(alias="schemaVersion", pattern=r"^1\.0\.\d+$")
    branches: list[BranchEntryV1_0]
    spec_index: dict[str, list[str]] = Field(default_factory=dict, alias="specIndex")


# ============================================================================
# Version 1.1.0 (current)
# ============================================================================


class BranchEntryV1_1(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(pattern=_BRANCH_NAME_REGEX)
    base_branch: str = Field(alias="baseBranch", min_length=1)
    spec_id: str = Field(alias="specId", pattern=_SPEC_ID_REGEX)
    parent_spec_id: Annotated[str, Field(pattern=_SPEC_ID_REGEX)] | None = Field(
        default=None, alias="parentSpecId"
    )
    status: StatusLiteral
    pull_request_ref: str | None = Field(default=None, alias="pullRequestRef")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @model_validator(mode="after")
    def timestamps_ordered(self) -> Self:
        _check_timestamps(self.created_at, self.updated_at)
        return self


class BranchMappingV1_1(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_version: str = Field(alias="schemaVersion", pattern=r"^1\.1\.\d+$")
    branches: list[BranchEntryV1_1]
    spec_index: dict[str, list[str]] = Field(default_factory=dict, alias="specIndex")


# ============================================================================
# Migrations
# ============================================================================


def migrate_1_0_to_1_1(doc: BranchMappingV1_0) -> BranchMappingV1_1:
    """Lift a 1.0.0 document to 1.1.0.

    parentSpecId did not exist in 1.0.0 and stays absent. A numeric `pr` is
    carried over as the string pullRequestRef.
    """
    branches = []
    for entry in doc.branches:
        pull_request_ref = entry.pull_request_ref
        if pull_request_ref is None and entry.pr is not None:
            pull_request_ref = str(entry.pr)
        branches.append(
            BranchEntryV1_1(
                name=entry.name,
                base_branch=entry.base_branch,
                spec_id=entry.spec_id,
                status=entry.status,
                pull_request_ref=pull_request_ref,
                created_at=entry.created_at,
                updated_at=entry.updated_at,
            )
        )
    return BranchMappingV1_1(
        schema_version="1.1.0",
        branches=branches,
        spec_index=doc.spec_index,
    )


# Keyed by (major, minor); any patch release of a known minor reads the same.
_DOCUMENT_MODELS: dict[tuple[int, int], type[BaseModel]] = {
    (1, 0): BranchMappingV1_0,
    (1, 1): BranchMappingV1_1,
}

# (major, minor) -> (next (major, minor), migration)
_MIGRATIONS: dict[tuple[int, int], tuple[tuple[int, int], Callable[[Any], BaseModel]]] = {
    (1, 0): ((1, 1), migrate_1_0_to_1_1),
}


def _parse_version(value: str) -> tuple[int, int, int]:
    parts = value.split(".")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise SchemaError(
            f"Invalid schemaVersion '{value}' in branches.json.\n"
            f"Expected MAJOR.MINOR.PATCH (current: {CURRENT_SCHEMA_VERSION})."
        )
    return int(parts[0]), int(parts[1]), int(parts[2])


def _check_supported(version: str) -> tuple[int, int]:
    major, minor, _patch = _parse_version(version)
    current_major, current_minor, _ = _parse_version(CURRENT_SCHEMA_VERSION)
    if major != current_major:
        raise SchemaError(
            f"branches.json uses schema version {version}, which is incompatible "
            f"with this version of specstack (supports {current_major}.x).\n"
            f"Upgrade specstack to read this file."
        )
    if (major, minor) not in _DOCUMENT_MODELS:
        newer = "newer" if minor > current_minor else "unknown"
        raise SchemaError(
            f"branches.json uses {newer} schema version {version} "
            f"(this build reads up to {CURRENT_SCHEMA_VERSION}).\n"
            f"Upgrade specstack before modifying this file."
        )
    return major, minor


# ============================================================================
# Conversion
# ============================================================================


def _to_domain(doc: BranchMappingV1_1) -> BranchMapping:
    entries = tuple(
        BranchEntry(
            name=e.name,
            base_branch=e.base_branch,
            spec_id=e.spec_id,
            status=BranchStatus(e.status),
            created_at=e.created_at,
            updated_at=e.updated_at,
            pull_request_ref=e.pull_request_ref,
            parent_spec_id=e.parent_spec_id,
        )
        for e in doc.branches
    )
    return BranchMapping(
        schema_version=CURRENT_SCHEMA_VERSION,
        branches=entries,
        spec_index=build_spec_index(entries),
    )


def build_spec_index(entries: tuple[BranchEntry, ...]) -> dict[str, list[str]]:
    """Group branch names by spec id, preserving entry order."""
    index: dict[str, list[str]] = {}
    for entry in entries:
        index.setdefault(entry.spec_id, []).append(entry.name)
    return index


def parse_document(text: str, source: str = "branches.json") -> BranchMapping:
    """Parse and migrate a serialized branch mapping.

    Raises:
        CorruptMappingError: Malformed JSON or a document violating its schema
        SchemaError: A schema version this build cannot read
    """
    recovery = (
        f"Fix or remove {source} by hand, then re-run `specstack import` "
        f"to rebuild tracking from local branches."
    )
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptMappingError(f"{source} is not valid JSON: {e}\n{recovery}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("schemaVersion"), str):
        raise CorruptMappingError(f"{source} has no string 'schemaVersion' field.\n{recovery}")

    version = raw["schemaVersion"]
    key = _check_supported(version)

    try:
        doc = _DOCUMENT_MODELS[key].model_validate(raw)
    except PydanticValidationError as e:
        raise CorruptMappingError(f"{source} does not match schema {version}:\n{e}\n{recovery}") from e

    current_key = _parse_version(CURRENT_SCHEMA_VERSION)[:2]
    while key != current_key:
        next_key, migrate = _MIGRATIONS[key]
        logger.debug("Migrating %s from schema %d.%d to %d.%d", source, *key, *next_key)
        doc = migrate(doc)
        key = next_key

    assert isinstance(doc, BranchMappingV1_1)

    seen: set[str] = set()
    for entry in doc.branches:
        if entry.name in seen:
            raise CorruptMappingError(
                f"{source} tracks branch '{entry.name}' more than once.\n{recovery}"
            )
        seen.add(entry.name)

    return _to_domain(doc)


def serialize_mapping(mapping: BranchMapping) -> str:
    """Serialize a mapping as a current-version document.

    Optional fields that are unset are omitted rather than written as null.
    """
    doc = BranchMappingV1_1(
        schema_version="1.1.0",
        branches=[
            BranchEntryV1_1(
                name=e.name,
                base_branch=e.base_branch,
                spec_id=e.spec_id,
                parent_spec_id=e.parent_spec_id,
                status=e.status.value,
                pull_request_ref=e.pull_request_ref,
                created_at=e.created_at,
                updated_at=e.updated_at,
            )
            for e in mapping.branches
        ],
        spec_index=build_spec_index(mapping.branches),
    )
    data = doc.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2) + "\n"

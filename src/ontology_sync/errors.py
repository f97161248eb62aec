"""Exception hierarchy for ontology_sync.

Every domain error carries a machine-readable ``code`` (an ``ErrorCode``
value) plus optional ``details`` so boundary code (the importer, the sync
engine, the CLI) can convert it into a structured result without string
matching.

Taxonomy:

- ``ValidationError`` -- malformed definitions; never retried.
- ``ConflictError``   -- critical-field change under the ``ask`` policy.
- ``ApplyError``      -- a single store mutation failed.
- ``FetchError``      -- network/IO failure, classified transient or
  permanent via ``FetchError.transient``.
- ``StateError``      -- sync state storage failure.
- ``BatchError``      -- misuse of the batch session (programmer error).
- ``EntityStoreError`` -- failure reported by an entity store.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes shared by results and exceptions."""

    # Validation
    INVALID_NAME = "INVALID_NAME"
    EMPTY_NAME = "EMPTY_NAME"
    NAME_TOO_LONG = "NAME_TOO_LONG"
    INVALID_NAME_FORMAT = "INVALID_NAME_FORMAT"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_CARDINALITY = "INVALID_CARDINALITY"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    INVALID_PROPERTIES = "INVALID_PROPERTIES"
    INVALID_PROPERTY_REFERENCE = "INVALID_PROPERTY_REFERENCE"
    INVALID_TEMPLATE = "INVALID_TEMPLATE"

    # Import
    IMPORT_FAILED = "IMPORT_FAILED"
    UNRESOLVED_CONFLICTS = "UNRESOLVED_CONFLICTS"
    APPLY_FAILED = "APPLY_FAILED"

    # Batch session
    NO_BATCH = "NO_BATCH"
    BATCH_IN_PROGRESS = "BATCH_IN_PROGRESS"
    INVALID_OPERATION = "INVALID_OPERATION"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"

    # Entity store
    DUPLICATE_PROPERTY = "DUPLICATE_PROPERTY"
    DUPLICATE_CLASS = "DUPLICATE_CLASS"
    PROPERTY_NOT_FOUND = "PROPERTY_NOT_FOUND"
    CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"

    # Sync
    NETWORK_ERROR = "NETWORK_ERROR"
    IO_ERROR = "IO_ERROR"
    INVALID_SOURCE = "INVALID_SOURCE"
    PARSE_ERROR = "PARSE_ERROR"
    CONFLICT = "CONFLICT"
    STATE_ERROR = "STATE_ERROR"
    TIMEOUT = "TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STRATEGY = "INVALID_STRATEGY"


# Fetch failures that must abort immediately instead of being retried.
PERMANENT_FETCH_CODES = frozenset(
    {ErrorCode.NOT_FOUND, ErrorCode.INVALID_SOURCE}
)


class OntologySyncError(Exception):
    """Base class for all ontology_sync errors.

    Args:
        message: Human-readable description.
        code: Machine-readable error code.
        details: Optional structured context for logging and reports.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(OntologySyncError):
    """A property or class definition is malformed."""


class ConflictError(OntologySyncError):
    """A change touches critical fields and needs a manual decision."""

    def __init__(
        self,
        message: str,
        conflict_count: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.UNRESOLVED_CONFLICTS, details)
        self.conflict_count = conflict_count


class ApplyError(OntologySyncError):
    """Applying one or more changes to the entity store failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str = ErrorCode.APPLY_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EntityStoreError(OntologySyncError):
    """The entity store rejected an operation."""

    def is_duplicate(self) -> bool:
        """Return ``True`` when the entity already exists."""
        return self.code in (
            ErrorCode.DUPLICATE_PROPERTY,
            ErrorCode.DUPLICATE_CLASS,
        )


class BatchError(OntologySyncError):
    """The batch session was used incorrectly."""


class FetchError(OntologySyncError):
    """Fetching source content failed.

    Args:
        message: Human-readable description.
        code: One of the sync error codes.
        source_id: Source the fetch was made for.
        transient: Override the retry classification.  By default every
            code except ``NOT_FOUND`` and ``INVALID_SOURCE`` is transient.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode | str = ErrorCode.NETWORK_ERROR,
        source_id: str | None = None,
        transient: bool | None = None,
    ) -> None:
        super().__init__(message, code, {"source_id": source_id})
        self.source_id = source_id
        if transient is None:
            transient = self.code not in PERMANENT_FETCH_CODES
        self.transient = transient


class StateError(OntologySyncError):
    """Reading or writing persisted sync state failed."""

    def __init__(self, message: str, source_id: str | None = None) -> None:
        super().__init__(
            message, ErrorCode.STATE_ERROR, {"source_id": source_id}
        )
        self.source_id = source_id

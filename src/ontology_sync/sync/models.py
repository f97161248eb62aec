"""Pydantic models for the sync engine.

Defines the data contracts used across the sync modules:

- ``SyncStrategy``: How a sync treats local modifications.
- ``SyncSource``: A registered template source.
- ``FetchedContent``: What a fetcher returns.
- ``SyncHistoryEntry`` / ``SyncState``: Persisted per-source state.
- ``SyncPreview``: Name-only change preview.
- ``SyncResult``: Outcome of a check or sync.

All models are frozen (immutable) for safety.  ``SyncState`` and
``SyncHistoryEntry`` use strict field types because they are also the
shape validator for records read back from storage.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, StrictBool, StrictStr

from ontology_sync.importer.models import AppliedCounts

HistoryAction = Literal["sync", "check", "rollback"]
HistoryResult = Literal["success", "failed", "conflicts"]


class SyncStrategy(str, Enum):
    """How a sync treats a source with local modifications."""

    OVERWRITE = "overwrite"
    MERGE = "merge"
    KEEP_LOCAL = "keep-local"
    ASK = "ask"


class SourceType(str, Enum):
    URL = "url"
    FILE = "file"


class SyncSource(BaseModel):
    """A template source the engine can synchronize from.

    Attributes:
        id: Unique identifier; also the sync-state key.
        name: Human-readable name.
        location: URL or file path.
        type: ``url`` or ``file``.
        default_strategy: Strategy used when ``sync`` is called without one.
    """

    id: str
    name: str
    location: str
    type: SourceType = SourceType.URL
    default_strategy: SyncStrategy = SyncStrategy.ASK

    model_config = {"frozen": True}


class FetchedContent(BaseModel):
    """Raw content returned by a fetcher.

    ``checksum`` is informational; the engine recomputes the checksum from
    ``content`` so gating does not depend on the fetcher's hashing.
    """

    content: str
    checksum: str | None = None
    last_modified: str | None = None
    etag: str | None = None

    model_config = {"frozen": True}


class SyncHistoryEntry(BaseModel):
    timestamp: StrictStr
    action: HistoryAction
    result: HistoryResult
    details: StrictStr

    model_config = {"frozen": True}


class SyncState(BaseModel):
    """Persisted synchronization state for one source.

    Attributes:
        source_id: Source identifier.
        last_synced_at: ISO 8601 timestamp of the last successful sync;
            empty until the first one.
        last_checksum: Checksum of the content last synced.
        local_modifications: Whether the store was edited since then.
        sync_history: Audit entries, newest first, bounded.
    """

    source_id: StrictStr
    last_synced_at: StrictStr = ""
    last_checksum: StrictStr = ""
    local_modifications: StrictBool = False
    sync_history: list[SyncHistoryEntry] = []

    model_config = {"frozen": True}


class SyncPreview(BaseModel):
    """Name-only preview of what a sync would change."""

    classes_to_add: list[str] = []
    classes_to_update: list[str] = []
    classes_to_remove: list[str] = []
    properties_to_add: list[str] = []
    properties_to_update: list[str] = []
    properties_to_remove: list[str] = []

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not any(
            (
                self.classes_to_add,
                self.classes_to_update,
                self.classes_to_remove,
                self.properties_to_add,
                self.properties_to_update,
                self.properties_to_remove,
            )
        )


class SyncResult(BaseModel):
    """Outcome of ``check_for_updates`` or ``sync``.

    Attributes:
        has_updates: Whether the fetched content differs from the last sync.
        preview: Name-only preview, when computed.
        applied: Counts written by the apply step, when it ran.
        errors: Error messages; empty on success.
        error_code: Code of the first failure, if any.
    """

    has_updates: bool
    preview: SyncPreview | None = None
    applied: AppliedCounts | None = None
    errors: list[str] = []
    error_code: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return not self.errors

"""Sync state persistence layer.

``SyncStateStore`` keeps, per source, the last-synced checksum, the
last-sync timestamp, a "local modifications" flag, and a bounded audit
history.  The durability mechanism is a pluggable ``SyncStateStorage``:

* ``InMemorySyncStateStorage`` -- a dict, for tests and one-shot runs.
* ``JsonFileSyncStateStorage`` -- one ``sync_{source}.json`` file per
  source, written atomically (temp file then ``os.replace()``).

Records read back from storage are validated against ``SyncState``; a
record with the wrong shape is treated as absent.  Storage failures are
re-raised as ``StateError`` with the original message preserved.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, unquote

import pydantic

from ontology_sync.core.async_utils import run_sync
from ontology_sync.errors import StateError
from ontology_sync.file_handler import delete_file, read_json, write_json_atomic
from ontology_sync.sync.models import (
    HistoryAction,
    HistoryResult,
    SyncHistoryEntry,
    SyncState,
)

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 100

_STATE_FILE_PREFIX = "sync_"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class SyncStateStorage(Protocol):
    """Key-value storage for raw state records."""

    async def get(self, source_id: str) -> dict[str, Any] | None: ...

    async def set(self, source_id: str, record: dict[str, Any]) -> None: ...

    async def delete(self, source_id: str) -> None: ...

    async def keys(self) -> list[str]: ...


class InMemorySyncStateStorage:
    """Dict-backed storage."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def get(self, source_id: str) -> dict[str, Any] | None:
        return self._records.get(source_id)

    async def set(self, source_id: str, record: dict[str, Any]) -> None:
        self._records[source_id] = record

    async def delete(self, source_id: str) -> None:
        self._records.pop(source_id, None)

    async def keys(self) -> list[str]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()


class JsonFileSyncStateStorage:
    """One JSON file per source under *state_dir*.

    Args:
        state_dir: Directory holding ``sync_{source_id}.json`` files.
            Created on first write.  Source ids are percent-encoded in the
            filename.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    async def get(self, source_id: str) -> dict[str, Any] | None:
        return await run_sync(read_json, self._state_path(source_id))

    async def set(self, source_id: str, record: dict[str, Any]) -> None:
        await run_sync(write_json_atomic, self._state_path(source_id), record)

    async def delete(self, source_id: str) -> None:
        await run_sync(delete_file, self._state_path(source_id))

    async def keys(self) -> list[str]:
        if not self._state_dir.is_dir():
            return []
        return sorted(
            unquote(path.stem[len(_STATE_FILE_PREFIX):])
            for path in self._state_dir.glob(f"{_STATE_FILE_PREFIX}*.json")
        )

    def _state_path(self, source_id: str) -> Path:
        """Return the path to the state file for *source_id*."""
        return self._state_dir / f"{_STATE_FILE_PREFIX}{quote(source_id, safe='')}.json"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SyncStateStore:
    """Load, update and audit sync state per source.

    Args:
        storage: Storage backend; defaults to in-memory.
        history_limit: Maximum history entries kept per source.
    """

    def __init__(
        self,
        storage: SyncStateStorage | None = None,
        history_limit: int = MAX_HISTORY_ENTRIES,
    ) -> None:
        self.storage = storage or InMemorySyncStateStorage()
        self.history_limit = history_limit

    async def get_state(self, source_id: str) -> SyncState | None:
        """Return the state for *source_id*, or ``None``.

        ``None`` is also returned for records that fail shape validation.

        Raises:
            StateError: If the storage backend fails.
        """
        try:
            return await self._load(source_id)
        except Exception as exc:
            logger.error("Failed to get sync state for %s: %s", source_id, exc)
            raise StateError(
                f"Failed to get sync state: {exc}", source_id
            ) from exc

    async def update_state(self, source_id: str, **updates: Any) -> SyncState:
        """Merge *updates* into the state, creating it if absent.

        ``source_id`` is never overwritten.

        Raises:
            StateError: If the storage backend fails or *updates* has the
                wrong shape.
        """
        try:
            current = await self._load(source_id) or SyncState(
                source_id=source_id
            )
            updates.pop("source_id", None)
            state = SyncState.model_validate(
                {**current.model_dump(), **updates, "source_id": source_id}
            )
            await self.storage.set(source_id, state.model_dump())
        except Exception as exc:
            logger.error(
                "Failed to update sync state for %s: %s", source_id, exc
            )
            raise StateError(
                f"Failed to update sync state: {exc}", source_id
            ) from exc
        logger.debug("Updated sync state for %s: %s", source_id, sorted(updates))
        return state

    async def record_sync(
        self,
        source_id: str,
        action: HistoryAction,
        result: HistoryResult,
        details: str,
    ) -> SyncHistoryEntry:
        """Prepend a timestamped history entry.

        The history is trimmed to ``history_limit`` (oldest entries are
        dropped).  ``last_synced_at`` is set to the entry's timestamp only
        for a successful ``sync``.

        Raises:
            StateError: If the storage backend fails.
        """
        try:
            current = await self._load(source_id) or SyncState(
                source_id=source_id
            )
            entry = SyncHistoryEntry(
                timestamp=_now(), action=action, result=result, details=details
            )
            history = [entry, *current.sync_history][: self.history_limit]
            changes: dict[str, Any] = {"sync_history": history}
            if action == "sync" and result == "success":
                changes["last_synced_at"] = entry.timestamp
            state = current.model_copy(update=changes)
            await self.storage.set(source_id, state.model_dump())
        except Exception as exc:
            logger.error(
                "Failed to record sync history for %s: %s", source_id, exc
            )
            raise StateError(
                f"Failed to record sync history: {exc}", source_id
            ) from exc
        logger.debug(
            "Recorded %s/%s for %s: %s", action, result, source_id, details
        )
        return entry

    async def clear_state(self, source_id: str) -> None:
        """Delete all state for *source_id*.

        Raises:
            StateError: If the storage backend fails.
        """
        try:
            await self.storage.delete(source_id)
        except Exception as exc:
            logger.error(
                "Failed to clear sync state for %s: %s", source_id, exc
            )
            raise StateError(
                f"Failed to clear sync state: {exc}", source_id
            ) from exc
        logger.debug("Cleared sync state for %s", source_id)

    async def list_source_ids(self) -> list[str]:
        """Return the ids of every source with stored state.

        Raises:
            StateError: If the storage backend fails.
        """
        try:
            return await self.storage.keys()
        except Exception as exc:
            logger.error("Failed to get source IDs: %s", exc)
            raise StateError(f"Failed to get source IDs: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load(self, source_id: str) -> SyncState | None:
        record = await self.storage.get(source_id)
        if record is None:
            logger.debug("No sync state found for %s", source_id)
            return None
        return self._validate(source_id, record)

    def _validate(self, source_id: str, record: Any) -> SyncState | None:
        try:
            state = SyncState.model_validate(record)
        except pydantic.ValidationError as exc:
            logger.warning(
                "Discarding malformed sync state for %s: %d error(s)",
                source_id,
                exc.error_count(),
            )
            return None
        if len(state.sync_history) > self.history_limit:
            state = state.model_copy(
                update={"sync_history": state.sync_history[: self.history_limit]}
            )
        return state

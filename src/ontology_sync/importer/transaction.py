"""Deprecated transaction-style wrapper over ``BatchApplier``.

Older callers used begin/add/commit/rollback naming.  The adapter maps
each call onto the batch session and adds no behaviour of its own; in
particular ``rollback_transaction`` only discards *pending* operations and
never undoes anything already written to the store.
"""

from __future__ import annotations

import logging
import warnings
from datetime import datetime, timezone
from typing import Any

from ontology_sync.importer.batch import BatchApplier
from ontology_sync.importer.models import (
    BatchOperation,
    BatchOperationType,
    BatchResult,
)

logger = logging.getLogger(__name__)

# Legacy operation names accepted by add_to_transaction.
LEGACY_OPERATION_TYPES = {
    "createProperty": BatchOperationType.CREATE_PROPERTY,
    "updateProperty": BatchOperationType.UPDATE_PROPERTY,
    "deleteProperty": BatchOperationType.DELETE_PROPERTY,
    "createClass": BatchOperationType.CREATE_CLASS,
    "updateClass": BatchOperationType.UPDATE_CLASS,
    "deleteClass": BatchOperationType.DELETE_CLASS,
}


def _deprecated(old: str, new: str) -> None:
    message = f"{old}() is deprecated, use {new}() instead"
    warnings.warn(message, DeprecationWarning, stacklevel=3)
    logger.warning(message)


def convert_legacy_data(
    operation_type: BatchOperationType, data: dict[str, Any]
) -> dict[str, Any]:
    """Pick the recognised fields out of a legacy payload.

    Values of the wrong type are dropped; missing ``type`` and
    ``cardinality`` default to ``default`` and ``one`` for properties.
    """

    def text(key: str) -> str | None:
        value = data.get(key)
        return value if isinstance(value, str) else None

    if operation_type.targets_property:
        converted: dict[str, Any] = {
            "name": text("name") or "",
            "type": text("type") or "default",
            "cardinality": text("cardinality") or "one",
            "description": text("description"),
            "title": text("title"),
            "hide": data["hide"] if isinstance(data.get("hide"), bool) else None,
        }
    else:
        properties = data.get("properties")
        converted = {
            "name": text("name") or "",
            "parent": text("parent"),
            "description": text("description"),
            "title": text("title"),
            "properties": (
                [p for p in properties if isinstance(p, str)]
                if isinstance(properties, list)
                else None
            ),
            "icon": text("icon"),
        }
    return {k: v for k, v in converted.items() if v is not None}


class TransactionAdapter:
    """Legacy transaction API implemented on a ``BatchApplier``."""

    def __init__(self, applier: BatchApplier) -> None:
        self.applier = applier

    def begin_transaction(self) -> dict[str, Any]:
        _deprecated("begin_transaction", "begin_batch")
        batch_id = self.applier.begin_batch()
        return {
            "id": batch_id,
            "operations": [],
            "status": "pending",
            "started_at": datetime.now(timezone.utc).isoformat(),
        }

    def add_to_transaction(self, operation: dict[str, Any]) -> None:
        """Queue a legacy ``{type, id?, data}`` operation.

        Operations without data or with an unrecognised type are skipped
        with a warning.
        """
        _deprecated("add_to_transaction", "add_to_batch")
        data = operation.get("data")
        if not data:
            logger.warning("add_to_transaction() called without data, skipping")
            return

        op_type = LEGACY_OPERATION_TYPES.get(operation.get("type", ""))
        if op_type is None:
            logger.warning(
                "add_to_transaction() called with invalid operation type: %s",
                operation.get("type"),
            )
            return

        name = operation.get("id") or (
            data["name"] if isinstance(data.get("name"), str) else ""
        )
        self.applier.add_to_batch(
            BatchOperation(
                type=op_type,
                name=name,
                data=convert_legacy_data(op_type, data),
            )
        )

    async def commit_transaction(self) -> BatchResult:
        _deprecated("commit_transaction", "execute_batch")
        return await self.applier.execute_batch()

    def rollback_transaction(self) -> None:
        """Cancel pending operations.  Applied operations are NOT undone."""
        _deprecated("rollback_transaction", "cancel_batch")
        self.applier.cancel_batch()

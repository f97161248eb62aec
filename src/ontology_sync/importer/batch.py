"""Non-atomic batch application of store mutations.

The store has no multi-operation transactions, so a batch is simply an
ordered list of operations executed one after another:

* Operations run strictly sequentially, in insertion order.
* A failing operation is recorded and the batch continues; earlier
  operations stay applied and are listed in ``BatchResult.applied_items``
  for manual cleanup.
* Only one batch may be pending at a time.

Misuse of the session (beginning twice, adding without a batch) raises
``BatchError`` immediately.  Store failures never escape
``execute_batch``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ontology_sync.core.async_utils import maybe_await
from ontology_sync.errors import ApplyError, BatchError, ErrorCode
from ontology_sync.importer.models import (
    BatchErrorEntry,
    BatchOperation,
    BatchOperationType,
    BatchProgress,
    BatchResult,
    BatchState,
    BatchStatus,
)
from ontology_sync.ontology.models import ClassDefinition, PropertyDefinition
from ontology_sync.store.base import EntityStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[BatchProgress], Any]


@dataclass
class _PendingBatch:
    id: str
    operations: list[BatchOperation] = field(default_factory=list)
    status: BatchState = "pending"


def _progress(index: int, total: int) -> BatchProgress:
    return BatchProgress(
        current=index + 1,
        total=total,
        percentage=round((index + 1) / total * 100),
    )


class BatchApplier:
    """Queue store mutations and execute them sequentially.

    Args:
        store: Entity store the operations are applied to.
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self._pending: _PendingBatch | None = None
        self._last: BatchStatus | None = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def begin_batch(self) -> str:
        """Open a new batch and return its id.

        Raises:
            BatchError: ``BATCH_IN_PROGRESS`` if a batch is already pending.
        """
        if self._pending is not None:
            raise BatchError(
                "A batch is already in progress. "
                "Call execute_batch() or cancel_batch() first.",
                ErrorCode.BATCH_IN_PROGRESS,
                {"existing_batch_id": self._pending.id},
            )
        self._pending = _PendingBatch(id=str(uuid.uuid4()))
        self._last = None
        logger.debug("Batch started: %s", self._pending.id)
        return self._pending.id

    def add_to_batch(self, operation: BatchOperation) -> None:
        """Queue *operation* in the pending batch.

        Raises:
            BatchError: ``NO_BATCH`` without a pending batch,
                ``INVALID_OPERATION`` for an empty name or a create without
                data.
        """
        if self._pending is None:
            raise BatchError(
                "No batch in progress. Call begin_batch() first.",
                ErrorCode.NO_BATCH,
            )
        if not operation.name or not operation.name.strip():
            raise BatchError(
                "Operation must have a name",
                ErrorCode.INVALID_OPERATION,
                {"operation": operation.type.value},
            )
        if operation.type.is_create and operation.data is None:
            raise BatchError(
                "Create operation requires data",
                ErrorCode.INVALID_OPERATION,
                {"operation": operation.type.value, "name": operation.name},
            )
        self._pending.operations.append(operation)
        logger.debug(
            "Added to batch %s: %s %s",
            self._pending.id,
            operation.type.value,
            operation.name,
        )

    async def execute_batch(
        self, on_progress: ProgressCallback | None = None
    ) -> BatchResult:
        """Run every queued operation and clear the pending batch.

        Args:
            on_progress: Called after each operation, success or failure.

        Raises:
            BatchError: ``NO_BATCH`` if no batch is pending.
        """
        if self._pending is None:
            raise BatchError(
                "No batch in progress. Call begin_batch() first.",
                ErrorCode.NO_BATCH,
            )
        batch = self._pending
        batch.status = "executing"
        logger.info(
            "Executing batch %s (%d operations)",
            batch.id,
            len(batch.operations),
        )

        result = None
        try:
            result = await self._run(
                batch.operations,
                self._execute_operation,
                lambda op, _index: op.name,
                on_progress,
                context=batch.id,
            )
        finally:
            # The session is released even if execution is interrupted.
            batch.status = (
                "completed" if result is not None and not result.failed else "failed"
            )
            self._last = BatchStatus(
                id=batch.id,
                operation_count=len(batch.operations),
                status=batch.status,
            )
            self._pending = None
        logger.info(
            "Batch %s completed: %d succeeded, %d failed",
            batch.id,
            result.succeeded,
            result.failed,
        )
        return result

    def cancel_batch(self) -> None:
        """Discard the pending batch without executing it.

        Raises:
            BatchError: ``NO_BATCH`` if no batch is pending.
        """
        if self._pending is None:
            raise BatchError("No batch in progress", ErrorCode.NO_BATCH)
        logger.info("Batch cancelled: %s", self._pending.id)
        self._pending = None

    def batch_status(self) -> BatchStatus | None:
        """Return the pending batch, or the last executed batch's outcome."""
        if self._pending is not None:
            return BatchStatus(
                id=self._pending.id,
                operation_count=len(self._pending.operations),
                status=self._pending.status,
            )
        return self._last

    @property
    def in_progress(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def apply(
        self,
        operations: Iterable[BatchOperation],
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Begin a batch, queue *operations*, and execute it.

        If queueing fails the batch is cancelled before the error is
        re-raised.
        """
        self.begin_batch()
        try:
            for operation in operations:
                self.add_to_batch(operation)
        except BatchError:
            self.cancel_batch()
            raise
        return await self.execute_batch(on_progress)

    async def run_batch(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[Any] | Any],
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Apply *operation* to each item with batch isolation semantics.

        Does not use the pending-batch session.  Items are identified in
        the result by their index.
        """
        return await self._run(
            items,
            operation,
            lambda _item, index: str(index),
            on_progress,
            context="run_batch",
        )

    async def _run(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[Any] | Any],
        label: Callable[[T, int], str],
        on_progress: ProgressCallback | None,
        context: str,
    ) -> BatchResult:
        total = len(items)
        succeeded = 0
        errors: list[BatchErrorEntry] = []
        applied: list[str] = []

        for index, item in enumerate(items):
            name = label(item, index)
            try:
                await maybe_await(operation(item))
            except Exception as exc:
                errors.append(
                    BatchErrorEntry(
                        index=index, item=name, error=str(exc) or "Unknown error"
                    )
                )
                logger.error(
                    "Batch operation failed (%s, index %d, %s): %s",
                    context,
                    index,
                    name,
                    exc,
                )
            else:
                succeeded += 1
                applied.append(name)

            if on_progress is not None:
                await _notify(on_progress, _progress(index, total), context)

        return BatchResult(
            total=total,
            succeeded=succeeded,
            failed=len(errors),
            errors=errors,
            applied_items=applied,
        )

    async def _execute_operation(self, op: BatchOperation) -> None:
        """Dispatch one operation to the store."""
        kind = op.type
        if kind is BatchOperationType.CREATE_PROPERTY:
            await self.store.create_property(
                _as_definition(op, PropertyDefinition)
            )
        elif kind is BatchOperationType.UPDATE_PROPERTY:
            await self.store.update_property(op.name, _as_updates(op))
        elif kind is BatchOperationType.DELETE_PROPERTY:
            await self.store.delete_property(op.name)
        elif kind is BatchOperationType.CREATE_CLASS:
            await self.store.create_class(_as_definition(op, ClassDefinition))
        elif kind is BatchOperationType.UPDATE_CLASS:
            await self.store.update_class(op.name, _as_updates(op))
        elif kind is BatchOperationType.DELETE_CLASS:
            await self.store.delete_class(op.name)
        else:
            raise ApplyError(
                f"Unknown operation type: {kind}",
                ErrorCode.UNKNOWN_OPERATION,
            )


async def _notify(
    on_progress: ProgressCallback, progress: BatchProgress, context: str
) -> None:
    try:
        await maybe_await(on_progress(progress))
    except Exception:
        logger.warning(
            "Progress callback failed (%s, %d/%d)",
            context,
            progress.current,
            progress.total,
            exc_info=True,
        )


def _as_definition(op: BatchOperation, model: type[T]) -> T:
    data = op.data
    if isinstance(data, model):
        return data
    if isinstance(data, dict):
        return model.model_validate(data)
    raise ApplyError(
        f"Invalid {op.type.value} data for {op.name}",
        details={"operation": op.type.value, "name": op.name},
    )


def _as_updates(op: BatchOperation) -> dict[str, Any]:
    data = op.data
    if data is None:
        return {}
    if isinstance(data, dict):
        return dict(data)
    if isinstance(data, (PropertyDefinition, ClassDefinition)):
        return data.model_dump(exclude={"name"})
    raise ApplyError(
        f"Invalid {op.type.value} data for {op.name}",
        details={"operation": op.type.value, "name": op.name},
    )

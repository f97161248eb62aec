"""Import orchestration: parse, validate, compare, gate, apply.

``OntologyImporter`` ties the collaborators together::

    raw text -> parser -> ParsedTemplate -> diff <- store snapshot
             -> ImportPreview -> conflict gate -> BatchApplier -> store

``preview()`` raises on parse or validation failure.  ``import_template()``
never raises: every failure becomes part of the returned ``ImportResult``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any

from ontology_sync.core.async_utils import maybe_await
from ontology_sync.errors import ErrorCode, ValidationError
from ontology_sync.importer.batch import BatchApplier
from ontology_sync.importer.diff import TemplateDiffer
from ontology_sync.importer.models import (
    AppliedCounts,
    BatchOperation,
    BatchOperationType,
    BatchProgress,
    ClassUpdate,
    ImportErrorDetail,
    ImportOptions,
    ImportPreview,
    ImportProgress,
    ImportResult,
    PropertyUpdate,
)
from ontology_sync.importer.resolver import create_conflict_policy
from ontology_sync.ontology.parser import TemplateParser
from ontology_sync.store.base import EntityStore, snapshot

logger = logging.getLogger(__name__)


def _update_data(update: ClassUpdate | PropertyUpdate) -> dict[str, Any]:
    after = update.after.model_dump()
    return {field: after[field] for field in update.changes if field != "name"}


def build_operations(
    preview: ImportPreview,
    class_updates: list[ClassUpdate],
    property_updates: list[PropertyUpdate],
) -> list[BatchOperation]:
    """Order the changes for application.

    Properties are created before the classes that reference them, and
    creates precede updates.  List order is kept within each group.
    """
    operations = [
        BatchOperation(
            type=BatchOperationType.CREATE_PROPERTY, name=p.name, data=p
        )
        for p in preview.new_properties
    ]
    operations.extend(
        BatchOperation(type=BatchOperationType.CREATE_CLASS, name=c.name, data=c)
        for c in preview.new_classes
    )
    operations.extend(
        BatchOperation(
            type=BatchOperationType.UPDATE_PROPERTY,
            name=u.name,
            data=_update_data(u),
        )
        for u in property_updates
    )
    operations.extend(
        BatchOperation(
            type=BatchOperationType.UPDATE_CLASS,
            name=u.name,
            data=_update_data(u),
        )
        for u in class_updates
    )
    return operations


class OntologyImporter:
    """Coordinate the import of an ontology template into a store.

    Args:
        parser: Turns raw text into a ``ParsedTemplate``.
        store: Target entity store.
        options: Default options; per-call options override them.
        differ: Diff engine; defaults to ``TemplateDiffer()``.
    """

    def __init__(
        self,
        parser: TemplateParser,
        store: EntityStore,
        options: ImportOptions | None = None,
        differ: TemplateDiffer | None = None,
    ) -> None:
        self.parser = parser
        self.store = store
        self.options = options or ImportOptions()
        self.differ = differ or TemplateDiffer()
        self.applier = BatchApplier(store)

    async def preview(self, content: str) -> ImportPreview:
        """Compute the change set for *content* without applying it.

        Unlike ``import_template``, failures are raised to the caller.

        Raises:
            ValidationError: If parsing or validation fails.
            EntityStoreError: If the store cannot be read.
        """
        return await self._preview(content, self.options)

    async def import_template(
        self, content: str, options: ImportOptions | None = None
    ) -> ImportResult:
        """Import *content* into the store.

        Args:
            content: Raw template text.
            options: Replaces the importer's default options for this
                call.  A missing ``on_progress`` falls back to the default
                options' callback.

        Returns:
            ``ImportResult``.  ``success`` is False on parse/validation
            failure, on unresolved conflicts under ``ask``, or if any
            operation failed; ``applied`` always counts what was written.
        """
        started = time.monotonic()
        opts = self._effective_options(options)

        def elapsed() -> float:
            return time.monotonic() - started

        try:
            preview = await self._preview(content, opts)
            policy = create_conflict_policy(opts.conflict_strategy)

            if policy.blocks(preview):
                count = len(preview.conflicts)
                logger.warning(
                    "Import blocked: %d unresolved conflict(s)", count
                )
                return ImportResult(
                    success=False,
                    preview=preview,
                    errors=[
                        ImportErrorDetail(
                            code=ErrorCode.UNRESOLVED_CONFLICTS.value,
                            message=f"{count} conflict(s) require resolution",
                            details={"conflicts": count},
                        )
                    ],
                    duration=elapsed(),
                    dry_run=opts.dry_run,
                )

            if opts.dry_run:
                logger.info(
                    "Dry run: %d new, %d updated, nothing applied",
                    preview.summary.total_new,
                    preview.summary.total_updated,
                )
                return ImportResult(
                    success=True,
                    preview=preview,
                    duration=elapsed(),
                    dry_run=True,
                )

            class_updates, property_updates = policy.select_updates(preview)
            operations = build_operations(
                preview, class_updates, property_updates
            )
            applied, errors = await self._apply(operations, opts)
        except Exception as exc:
            logger.error("Import failed: %s", exc)
            return ImportResult(
                success=False,
                preview=ImportPreview.empty(),
                errors=[
                    ImportErrorDetail(
                        code=ErrorCode.IMPORT_FAILED.value,
                        message=str(exc) or "Unknown error",
                    )
                ],
                duration=elapsed(),
                dry_run=opts.dry_run,
            )

        logger.info(
            "Import finished: %d classes, %d properties applied, %d error(s)",
            applied.classes,
            applied.properties,
            len(errors),
        )
        return ImportResult(
            success=not errors,
            preview=preview,
            applied=applied,
            errors=errors,
            duration=elapsed(),
            dry_run=False,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _effective_options(self, options: ImportOptions | None) -> ImportOptions:
        if options is None:
            return self.options
        if options.on_progress is None and self.options.on_progress is not None:
            return replace(options, on_progress=self.options.on_progress)
        return options

    async def _report(
        self,
        opts: ImportOptions,
        phase: str,
        current: int,
        total: int,
        message: str,
    ) -> None:
        if opts.on_progress is None:
            return
        try:
            await maybe_await(
                opts.on_progress(
                    ImportProgress(
                        phase=phase, current=current, total=total, message=message
                    )
                )
            )
        except Exception:
            logger.warning(
                "Progress callback failed during %s (%d/%d)",
                phase,
                current,
                total,
                exc_info=True,
            )

    async def _preview(
        self, content: str, opts: ImportOptions
    ) -> ImportPreview:
        await self._report(opts, "parsing", 0, 3, "Parsing template...")
        template = self.parser.parse(content)

        await self._report(opts, "validating", 1, 3, "Validating template...")
        if opts.validate and not self.parser.validate(template):
            raise ValidationError(
                "Template validation failed", ErrorCode.INVALID_TEMPLATE
            )

        await self._report(
            opts, "comparing", 2, 3, "Comparing with existing ontology..."
        )
        existing = await snapshot(self.store)
        preview = self.differ.diff(template, existing)

        await self._report(opts, "comparing", 3, 3, "Preview complete")
        logger.debug(
            "Preview: %d new, %d updated, %d conflict(s)",
            preview.summary.total_new,
            preview.summary.total_updated,
            preview.summary.total_conflicts,
        )
        return preview

    async def _apply(
        self, operations: list[BatchOperation], opts: ImportOptions
    ) -> tuple[AppliedCounts, list[ImportErrorDetail]]:
        if not operations:
            return (AppliedCounts(), [])

        total = len(operations)
        await self._report(opts, "importing", 0, total, "Applying changes...")

        async def on_batch_progress(progress: BatchProgress) -> None:
            await self._report(
                opts,
                "importing",
                progress.current,
                progress.total,
                f"Applied {progress.current} of {progress.total} change(s)",
            )

        result = await self.applier.apply(operations, on_batch_progress)

        failed_indexes = {entry.index for entry in result.errors}
        succeeded = [
            op for i, op in enumerate(operations) if i not in failed_indexes
        ]
        applied = AppliedCounts(
            classes=sum(1 for op in succeeded if not op.type.targets_property),
            properties=sum(1 for op in succeeded if op.type.targets_property),
        )
        errors = [
            ImportErrorDetail(
                code=ErrorCode.APPLY_FAILED.value,
                message=entry.error,
                item=entry.item,
                details={"operation": operations[entry.index].type.value},
            )
            for entry in result.errors
        ]
        return (applied, errors)

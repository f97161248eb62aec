"""Data contracts for the import workflow.

- ``ImportPreview`` and its parts: the change set produced by the diff.
- ``BatchOperation``, ``BatchResult``, ``BatchProgress``, ``BatchStatus``:
  the batch applier's vocabulary.
- ``ImportOptions``, ``ImportProgress``, ``ImportResult``: the
  orchestrator's inputs and outputs.

Models are frozen pydantic models except ``ImportOptions``, which carries
a callback and is a plain frozen dataclass.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel

from ontology_sync.ontology.models import ClassDefinition, PropertyDefinition

ConflictStrategy = Literal["ask", "overwrite", "skip"]
ImportPhase = Literal["parsing", "validating", "comparing", "importing"]
BatchState = Literal["pending", "executing", "completed", "failed"]


# ---------------------------------------------------------------------------
# Change set
# ---------------------------------------------------------------------------


class ClassUpdate(BaseModel):
    """An existing class whose template definition differs."""

    name: str
    before: ClassDefinition
    after: ClassDefinition
    changes: list[str]

    model_config = {"frozen": True}


class PropertyUpdate(BaseModel):
    """An existing property whose template definition differs."""

    name: str
    before: PropertyDefinition
    after: PropertyDefinition
    changes: list[str]

    model_config = {"frozen": True}


class Conflict(BaseModel):
    """An update that touches critical fields.

    Attributes:
        type: ``class`` or ``property``.
        name: Entity name as written in the template.
        reason: ``"Critical field(s) changed: ..."`` naming the fields.
        fields: The critical fields that changed.
        existing_value: Stored definition.
        new_value: Template definition.
    """

    type: Literal["class", "property"]
    name: str
    reason: str
    fields: list[str]
    existing_value: dict[str, Any]
    new_value: dict[str, Any]

    model_config = {"frozen": True}


class PreviewSummary(BaseModel):
    total_new: int = 0
    total_updated: int = 0
    total_conflicts: int = 0

    model_config = {"frozen": True}


class ImportPreview(BaseModel):
    """The change set between a template and the store.

    Conflicts overlay updates: every conflict also appears in
    ``updated_classes`` or ``updated_properties``.
    """

    new_classes: list[ClassDefinition] = []
    updated_classes: list[ClassUpdate] = []
    new_properties: list[PropertyDefinition] = []
    updated_properties: list[PropertyUpdate] = []
    conflicts: list[Conflict] = []
    summary: PreviewSummary = PreviewSummary()

    model_config = {"frozen": True}

    @classmethod
    def empty(cls) -> ImportPreview:
        return cls()

    @property
    def has_changes(self) -> bool:
        return bool(self.summary.total_new or self.summary.total_updated)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


class BatchOperationType(str, Enum):
    CREATE_PROPERTY = "create_property"
    UPDATE_PROPERTY = "update_property"
    DELETE_PROPERTY = "delete_property"
    CREATE_CLASS = "create_class"
    UPDATE_CLASS = "update_class"
    DELETE_CLASS = "delete_class"

    @property
    def is_create(self) -> bool:
        return self.value.startswith("create_")

    @property
    def targets_property(self) -> bool:
        return self.value.endswith("_property")


class BatchOperation(BaseModel):
    """One store mutation.

    Attributes:
        type: Operation kind.
        name: Target entity name.
        data: Full definition for creates, changed fields for updates,
            unused for deletes.
    """

    type: BatchOperationType
    name: str
    data: Any = None

    model_config = {"frozen": True}


class BatchProgress(BaseModel):
    current: int
    total: int
    percentage: int

    model_config = {"frozen": True}


class BatchErrorEntry(BaseModel):
    index: int
    item: str
    error: str

    model_config = {"frozen": True}


class BatchResult(BaseModel):
    """Outcome of a batch run.

    ``succeeded + failed == total`` and ``applied_items`` lists the names of
    the operations that succeeded, in execution order.
    """

    total: int
    succeeded: int = 0
    failed: int = 0
    errors: list[BatchErrorEntry] = []
    applied_items: list[str] = []

    model_config = {"frozen": True}


class BatchStatus(BaseModel):
    id: str
    operation_count: int
    status: BatchState

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


class ImportProgress(BaseModel):
    phase: ImportPhase
    current: int
    total: int
    message: str

    model_config = {"frozen": True}


class ImportErrorDetail(BaseModel):
    """One error reported by an import."""

    code: str
    message: str
    item: str | None = None
    details: Any = None

    model_config = {"frozen": True}


class AppliedCounts(BaseModel):
    classes: int = 0
    properties: int = 0

    model_config = {"frozen": True}


class ImportResult(BaseModel):
    """Outcome of ``OntologyImporter.import_template``.

    Attributes:
        success: True only if nothing failed and nothing was blocked.
        preview: The change set the import was based on.
        applied: Counts of classes and properties actually written.
        errors: Parse, gate or per-operation errors.
        duration: Wall-clock seconds.
        dry_run: Whether application was skipped.
    """

    success: bool
    preview: ImportPreview
    applied: AppliedCounts = AppliedCounts()
    errors: list[ImportErrorDetail] = []
    duration: float = 0.0
    dry_run: bool = False

    model_config = {"frozen": True}


@dataclass(frozen=True)
class ImportOptions:
    """Options recognised by the importer.

    Attributes:
        dry_run: Compute the preview but apply nothing.
        conflict_strategy: ``ask``, ``overwrite`` or ``skip``.
        validate: Run template validation before comparing.
        on_progress: Called with ``ImportProgress`` at each phase.
    """

    dry_run: bool = False
    conflict_strategy: ConflictStrategy = "ask"
    validate: bool = True
    on_progress: Callable[[ImportProgress], Any] | None = None

    def merged(self, **overrides: Any) -> ImportOptions:
        """Return a copy with the non-``None`` *overrides* applied."""
        return replace(
            self, **{k: v for k, v in overrides.items() if v is not None}
        )

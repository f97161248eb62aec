"""Template import: diff, batch application and orchestration."""

from .batch import BatchApplier
from .diff import CriticalFields, TemplateDiffer, changed_fields, diff_template
from .importer import OntologyImporter
from .models import (
    AppliedCounts,
    BatchOperation,
    BatchOperationType,
    BatchProgress,
    BatchResult,
    BatchStatus,
    ClassUpdate,
    Conflict,
    ImportErrorDetail,
    ImportOptions,
    ImportPreview,
    ImportProgress,
    ImportResult,
    PropertyUpdate,
)
from .resolver import create_conflict_policy
from .transaction import TransactionAdapter

__all__ = [
    "AppliedCounts",
    "BatchApplier",
    "BatchOperation",
    "BatchOperationType",
    "BatchProgress",
    "BatchResult",
    "BatchStatus",
    "ClassUpdate",
    "Conflict",
    "CriticalFields",
    "ImportErrorDetail",
    "ImportOptions",
    "ImportPreview",
    "ImportProgress",
    "ImportResult",
    "OntologyImporter",
    "PropertyUpdate",
    "TemplateDiffer",
    "TransactionAdapter",
    "changed_fields",
    "create_conflict_policy",
    "diff_template",
]

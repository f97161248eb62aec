"""Template-to-store diff.

Compares a parsed template against a snapshot of the store and classifies
each template entity as new, updated, or unchanged.  Updates touching a
critical field are additionally reported as conflicts.

The diff is pure: it performs no I/O and never raises for well-formed
input.

Names are compared through ``normalize_name`` because the store
canonicalizes names on write.  For the same reason the name-reference
fields (a class's ``parent`` and ``properties``, a property's
``classes``) are compared in normalized form.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ontology_sync.importer.models import (
    ClassUpdate,
    Conflict,
    ImportPreview,
    PreviewSummary,
    PropertyUpdate,
)
from ontology_sync.naming import normalize_name, normalize_names
from ontology_sync.ontology.models import (
    ClassDefinition,
    ExistingOntology,
    ParsedTemplate,
    PropertyDefinition,
)

# Fields holding a single name or a list of names.
_NAME_FIELDS = frozenset({"name", "parent"})
_NAME_LIST_FIELDS = frozenset({"properties", "classes"})


class CriticalFields(BaseModel):
    """Fields whose change turns an update into a conflict."""

    classes: list[str] = ["parent"]
    properties: list[str] = ["type", "cardinality"]

    model_config = {"frozen": True}


DEFAULT_CRITICAL_FIELDS = CriticalFields()


def _comparable(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field in _NAME_FIELDS and isinstance(value, str):
        return normalize_name(value)
    if field in _NAME_LIST_FIELDS and isinstance(value, list):
        return normalize_names(value)
    return value


def changed_fields(before: BaseModel, after: BaseModel) -> list[str]:
    """Return the fields that differ between two definitions.

    Every field of the union of both dumps is compared by value; name and
    name-reference fields are compared normalized.  Order follows the
    field declaration order.
    """
    before_data = before.model_dump()
    after_data = after.model_dump()
    keys = list(before_data)
    keys.extend(k for k in after_data if k not in before_data)

    return [
        key
        for key in keys
        if _comparable(key, before_data.get(key))
        != _comparable(key, after_data.get(key))
    ]


def _conflict(
    entity_type: str,
    name: str,
    existing: BaseModel,
    new: BaseModel,
    changes: list[str],
    critical: list[str],
) -> Conflict | None:
    hits = [field for field in changes if field in critical]
    if not hits:
        return None
    return Conflict(
        type=entity_type,
        name=name,
        reason=f"Critical field(s) changed: {', '.join(hits)}",
        fields=hits,
        existing_value=existing.model_dump(),
        new_value=new.model_dump(),
    )


class TemplateDiffer:
    """Diff a template against a snapshot with a fixed critical-field policy.

    Args:
        critical_fields: Which field changes count as conflicts.
    """

    def __init__(self, critical_fields: CriticalFields | None = None) -> None:
        self.critical_fields = critical_fields or DEFAULT_CRITICAL_FIELDS

    def diff(
        self, template: ParsedTemplate, existing: ExistingOntology
    ) -> ImportPreview:
        new_classes: list[ClassDefinition] = []
        updated_classes: list[ClassUpdate] = []
        new_properties: list[PropertyDefinition] = []
        updated_properties: list[PropertyUpdate] = []
        conflicts: list[Conflict] = []

        for cls_def in template.classes:
            current = existing.find_class(cls_def.name)
            if current is None:
                new_classes.append(cls_def)
                continue
            changes = changed_fields(current, cls_def)
            if not changes:
                continue
            updated_classes.append(
                ClassUpdate(
                    name=cls_def.name,
                    before=current,
                    after=cls_def,
                    changes=changes,
                )
            )
            conflict = _conflict(
                "class",
                cls_def.name,
                current,
                cls_def,
                changes,
                self.critical_fields.classes,
            )
            if conflict is not None:
                conflicts.append(conflict)

        for prop in template.properties:
            current = existing.find_property(prop.name)
            if current is None:
                new_properties.append(prop)
                continue
            changes = changed_fields(current, prop)
            if not changes:
                continue
            updated_properties.append(
                PropertyUpdate(
                    name=prop.name,
                    before=current,
                    after=prop,
                    changes=changes,
                )
            )
            conflict = _conflict(
                "property",
                prop.name,
                current,
                prop,
                changes,
                self.critical_fields.properties,
            )
            if conflict is not None:
                conflicts.append(conflict)

        return ImportPreview(
            new_classes=new_classes,
            updated_classes=updated_classes,
            new_properties=new_properties,
            updated_properties=updated_properties,
            conflicts=conflicts,
            summary=PreviewSummary(
                total_new=len(new_classes) + len(new_properties),
                total_updated=len(updated_classes) + len(updated_properties),
                total_conflicts=len(conflicts),
            ),
        )


def diff_template(
    template: ParsedTemplate,
    existing: ExistingOntology,
    critical_fields: CriticalFields | None = None,
) -> ImportPreview:
    """Compute the change set between *template* and *existing*.

    Args:
        template: Parsed template.
        existing: Snapshot of the store.
        critical_fields: Conflict policy; defaults to ``parent`` for
            classes and ``type``/``cardinality`` for properties.

    Returns:
        The ``ImportPreview``.  An empty template yields an empty preview.
    """
    return TemplateDiffer(critical_fields).diff(template, existing)

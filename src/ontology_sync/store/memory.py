"""In-memory entity store.

Mirrors the host store's write behaviour: names and name references are
canonicalized with ``normalize_name`` on write, and definitions are
validated on create.
"""

from __future__ import annotations

import logging
from typing import Any

from ontology_sync.errors import EntityStoreError, ErrorCode
from ontology_sync.naming import normalize_name, normalize_names
from ontology_sync.ontology.models import ClassDefinition, PropertyDefinition
from ontology_sync.validators import ensure_valid_class, ensure_valid_property

logger = logging.getLogger(__name__)


def _canonical_property(prop: PropertyDefinition) -> PropertyDefinition:
    return prop.model_copy(
        update={
            "name": normalize_name(prop.name),
            "classes": normalize_names(prop.classes),
        }
    )


def _canonical_class(cls_def: ClassDefinition) -> ClassDefinition:
    return cls_def.model_copy(
        update={
            "name": normalize_name(cls_def.name),
            "parent": (
                normalize_name(cls_def.parent)
                if cls_def.parent is not None
                else None
            ),
            "properties": normalize_names(cls_def.properties) or [],
        }
    )


class InMemoryEntityStore:
    """Dict-backed implementation of the ``EntityStore`` protocol.

    Args:
        properties: Initial property definitions.
        classes: Initial class definitions.
    """

    def __init__(
        self,
        properties: list[PropertyDefinition] | None = None,
        classes: list[ClassDefinition] | None = None,
    ) -> None:
        self._properties: dict[str, PropertyDefinition] = {}
        self._classes: dict[str, ClassDefinition] = {}
        for prop in properties or []:
            canonical = _canonical_property(prop)
            self._properties[canonical.name] = canonical
        for cls_def in classes or []:
            canonical = _canonical_class(cls_def)
            self._classes[canonical.name] = canonical

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    async def create_property(
        self, definition: PropertyDefinition
    ) -> PropertyDefinition:
        ensure_valid_property(definition)
        canonical = _canonical_property(definition)
        if canonical.name in self._properties:
            raise EntityStoreError(
                f"Property already exists: {definition.name}",
                ErrorCode.DUPLICATE_PROPERTY,
                {"name": definition.name},
            )
        await self._commit(properties={**self._properties, canonical.name: canonical})
        logger.debug("Created property %s", canonical.name)
        return canonical

    async def update_property(
        self, name: str, updates: dict[str, Any]
    ) -> PropertyDefinition:
        key = normalize_name(name)
        current = self._properties.get(key)
        if current is None:
            raise EntityStoreError(
                f"Property not found: {name}",
                ErrorCode.PROPERTY_NOT_FOUND,
                {"name": name},
            )
        merged = PropertyDefinition.model_validate(
            {**current.model_dump(), **_without_name(updates), "name": key}
        )
        ensure_valid_property(merged)
        await self._commit(
            properties={**self._properties, key: _canonical_property(merged)}
        )
        logger.debug("Updated property %s: %s", key, sorted(updates))
        return self._properties[key]

    async def delete_property(self, name: str) -> None:
        key = normalize_name(name)
        if key not in self._properties:
            raise EntityStoreError(
                f"Property not found: {name}",
                ErrorCode.PROPERTY_NOT_FOUND,
                {"name": name},
            )
        await self._commit(
            properties={k: v for k, v in self._properties.items() if k != key}
        )
        logger.debug("Deleted property %s", key)

    async def list_properties(self) -> list[PropertyDefinition]:
        return list(self._properties.values())

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    async def create_class(
        self, definition: ClassDefinition
    ) -> ClassDefinition:
        ensure_valid_class(definition)
        canonical = _canonical_class(definition)
        if canonical.name in self._classes:
            raise EntityStoreError(
                f"Class already exists: {definition.name}",
                ErrorCode.DUPLICATE_CLASS,
                {"name": definition.name},
            )
        await self._commit(classes={**self._classes, canonical.name: canonical})
        logger.debug("Created class %s", canonical.name)
        return canonical

    async def update_class(
        self, name: str, updates: dict[str, Any]
    ) -> ClassDefinition:
        key = normalize_name(name)
        current = self._classes.get(key)
        if current is None:
            raise EntityStoreError(
                f"Class not found: {name}",
                ErrorCode.CLASS_NOT_FOUND,
                {"name": name},
            )
        merged = ClassDefinition.model_validate(
            {**current.model_dump(), **_without_name(updates), "name": key}
        )
        ensure_valid_class(merged)
        await self._commit(classes={**self._classes, key: _canonical_class(merged)})
        logger.debug("Updated class %s: %s", key, sorted(updates))
        return self._classes[key]

    async def delete_class(self, name: str) -> None:
        key = normalize_name(name)
        if key not in self._classes:
            raise EntityStoreError(
                f"Class not found: {name}",
                ErrorCode.CLASS_NOT_FOUND,
                {"name": name},
            )
        await self._commit(
            classes={k: v for k, v in self._classes.items() if k != key}
        )
        logger.debug("Deleted class %s", key)

    async def list_classes(self) -> list[ClassDefinition]:
        return list(self._classes.values())

    # ------------------------------------------------------------------
    # Persistence hook
    # ------------------------------------------------------------------

    async def _commit(
        self,
        properties: dict[str, PropertyDefinition] | None = None,
        classes: dict[str, ClassDefinition] | None = None,
    ) -> None:
        """Persist the staged maps, then make them current.

        A failed write leaves the in-memory state untouched.
        """
        staged_properties = self._properties if properties is None else properties
        staged_classes = self._classes if classes is None else classes
        await self._persist(staged_properties, staged_classes)
        self._properties = staged_properties
        self._classes = staged_classes

    async def _persist(
        self,
        properties: dict[str, PropertyDefinition],
        classes: dict[str, ClassDefinition],
    ) -> None:
        """Called before every mutation is committed.  No-op in memory."""


def _without_name(updates: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in updates.items() if k != "name"}

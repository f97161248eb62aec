"""Entity store interface.

The store is the live schema being reconciled.  It has no multi-operation
transactions; each call either succeeds (returns, possibly ``None``) or
raises.  Return values are optional enrichment and must never be used as
the success signal.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ontology_sync.ontology.models import (
    ClassDefinition,
    ExistingOntology,
    PropertyDefinition,
)


@runtime_checkable
class EntityStore(Protocol):
    """Async CRUD surface of the target data store."""

    async def create_property(
        self, definition: PropertyDefinition
    ) -> PropertyDefinition | None: ...

    async def update_property(
        self, name: str, updates: dict[str, Any]
    ) -> PropertyDefinition | None: ...

    async def delete_property(self, name: str) -> None: ...

    async def create_class(
        self, definition: ClassDefinition
    ) -> ClassDefinition | None: ...

    async def update_class(
        self, name: str, updates: dict[str, Any]
    ) -> ClassDefinition | None: ...

    async def delete_class(self, name: str) -> None: ...

    async def list_properties(self) -> list[PropertyDefinition]: ...

    async def list_classes(self) -> list[ClassDefinition]: ...


async def snapshot(store: EntityStore) -> ExistingOntology:
    """Read the store's current classes and properties into a snapshot."""
    properties = await store.list_properties()
    classes = await store.list_classes()
    return ExistingOntology.from_definitions(
        classes=classes, properties=properties
    )

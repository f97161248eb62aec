"""Pydantic models for ontology definitions.

Defines the data contracts shared by the parser, the diff engine, the
entity stores and the importer:

- ``PropertyDefinition``: A typed property.
- ``ClassDefinition``: A class with an optional parent and property list.
- ``TemplateMetadata``: Optional template header.
- ``ParsedTemplate``: Output of a template parser.
- ``ExistingOntology``: Read-only snapshot of the target store.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, field_validator

from ontology_sync.naming import names_equal

PROPERTY_TYPES = (
    "text",
    "number",
    "date",
    "datetime",
    "boolean",
    "url",
    "page-reference",
    "node-reference",
)

CARDINALITIES = ("one", "many")

# Alternate spellings accepted from templates and host stores.
TYPE_ALIASES = {
    "default": "text",
    "string": "text",
    "checkbox": "boolean",
    "page": "page-reference",
    "node": "node-reference",
}


def canonical_type(value: str) -> str:
    """Map a property type alias to its canonical name.

    Unknown strings are returned unchanged (lowercased) so validation can
    report them.
    """
    key = value.strip().lower()
    return TYPE_ALIASES.get(key, key)


class PropertyDefinition(BaseModel):
    """A typed property.

    Attributes:
        name: Property name.
        type: Canonical value type (see ``PROPERTY_TYPES``).
        cardinality: ``one`` or ``many``.
        description: Free-form description.
        title: Display title.
        hide: Whether the host hides the property.
        classes: Names of classes the property is restricted to.
    """

    name: str
    type: str = "text"
    cardinality: str = "one"
    description: str | None = None
    title: str | None = None
    hide: bool | None = None
    classes: list[str] | None = None

    model_config = {"frozen": True}

    @field_validator("type", mode="before")
    @classmethod
    def _canonicalize_type(cls, value: object) -> object:
        if isinstance(value, str):
            return canonical_type(value)
        return value

    @field_validator("cardinality", mode="before")
    @classmethod
    def _lower_cardinality(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ClassDefinition(BaseModel):
    """A class in the hierarchy.

    Attributes:
        name: Class name.
        parent: Name of the parent class, if any.
        properties: Ordered names of the properties the class carries.
        description: Free-form description.
        title: Display title.
        icon: Display icon.
    """

    name: str
    parent: str | None = None
    properties: list[str] = []
    description: str | None = None
    title: str | None = None
    icon: str | None = None

    model_config = {"frozen": True}


class TemplateMetadata(BaseModel):
    """Optional header carried by a template."""

    name: str | None = None
    version: str | None = None
    description: str | None = None

    model_config = {"frozen": True}


class ParsedTemplate(BaseModel):
    """A parsed ontology template."""

    classes: list[ClassDefinition] = []
    properties: list[PropertyDefinition] = []
    metadata: TemplateMetadata | None = None

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.classes and not self.properties


class ExistingOntology(BaseModel):
    """Snapshot of the classes and properties currently in the store.

    Keys are the names as reported by the store.  The snapshot has no
    mutation methods and is rebuilt for each diff.
    """

    classes: dict[str, ClassDefinition] = {}
    properties: dict[str, PropertyDefinition] = {}

    model_config = {"frozen": True}

    @classmethod
    def empty(cls) -> ExistingOntology:
        return cls()

    @classmethod
    def from_definitions(
        cls,
        classes: Iterable[ClassDefinition] = (),
        properties: Iterable[PropertyDefinition] = (),
    ) -> ExistingOntology:
        """Build a snapshot keyed by each definition's own name."""
        return cls(
            classes={c.name: c for c in classes},
            properties={p.name: p for p in properties},
        )

    def find_class(self, name: str) -> ClassDefinition | None:
        """Look up a class by normalized name."""
        return _find(self.classes, name)

    def find_property(self, name: str) -> PropertyDefinition | None:
        """Look up a property by normalized name."""
        return _find(self.properties, name)


def _find(mapping: Mapping[str, BaseModel], name: str):
    for stored_name, definition in mapping.items():
        if names_equal(stored_name, name):
            return definition
    return None

"""Ontology data model.

The template parser lives in ``ontology_sync.ontology.parser``.
"""

from .models import (
    CARDINALITIES,
    PROPERTY_TYPES,
    ClassDefinition,
    ExistingOntology,
    ParsedTemplate,
    PropertyDefinition,
    TemplateMetadata,
)

__all__ = [
    "CARDINALITIES",
    "PROPERTY_TYPES",
    "ClassDefinition",
    "ExistingOntology",
    "ParsedTemplate",
    "PropertyDefinition",
    "TemplateMetadata",
]

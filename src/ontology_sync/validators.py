"""
Input validation for ontology definitions.

Checks property and class definitions before they reach the entity
store.  Each ``validate_*`` function returns ``(is_valid, error_message)``;
``ensure_*`` wrappers raise ``ValidationError`` with a specific code.
"""

import re

from ontology_sync.errors import ErrorCode, ValidationError
from ontology_sync.naming import names_equal, normalize_name
from ontology_sync.ontology.models import (
    CARDINALITIES,
    PROPERTY_TYPES,
    ClassDefinition,
    ParsedTemplate,
    PropertyDefinition,
)

MAX_NAME_LENGTH = 255

PROPERTY_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9\-_ ]*$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Property name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def _check_name(name: object, field_name: str) -> tuple[str, ErrorCode | None]:
    if not isinstance(name, str):
        return (
            format_validation_error(field_name, "must be a string"),
            ErrorCode.INVALID_NAME,
        )
    if not name.strip():
        return (
            format_validation_error(field_name, "cannot be empty"),
            ErrorCode.EMPTY_NAME,
        )
    if len(name) > MAX_NAME_LENGTH:
        return (
            format_validation_error(
                field_name,
                f"cannot exceed {MAX_NAME_LENGTH} characters",
            ),
            ErrorCode.NAME_TOO_LONG,
        )
    return ("", None)


def _property_errors(
    prop: PropertyDefinition,
) -> tuple[str, ErrorCode | None]:
    message, code = _check_name(prop.name, "Property name")
    if code is not None:
        return (message, code)

    if not PROPERTY_NAME_PATTERN.match(prop.name):
        return (
            format_validation_error(
                "Property name",
                "must start with a letter and contain only letters, "
                "numbers, hyphens, underscores and spaces",
            ),
            ErrorCode.INVALID_NAME_FORMAT,
        )

    if prop.type not in PROPERTY_TYPES:
        return (
            format_validation_error(
                "Property type",
                f"'{prop.type}' is not one of: {', '.join(PROPERTY_TYPES)}",
            ),
            ErrorCode.INVALID_TYPE,
        )

    if prop.cardinality not in CARDINALITIES:
        return (
            format_validation_error(
                "Cardinality", f"'{prop.cardinality}' must be 'one' or 'many'"
            ),
            ErrorCode.INVALID_CARDINALITY,
        )

    return ("", None)


def _class_errors(cls_def: ClassDefinition) -> tuple[str, ErrorCode | None]:
    message, code = _check_name(cls_def.name, "Class name")
    if code is not None:
        return (message, code)

    if cls_def.parent is not None and names_equal(cls_def.parent, cls_def.name):
        return (
            format_validation_error(
                "Class", f"'{cls_def.name}' cannot be its own parent"
            ),
            ErrorCode.CIRCULAR_REFERENCE,
        )

    for prop_name in cls_def.properties:
        if not isinstance(prop_name, str) or not prop_name.strip():
            return (
                format_validation_error(
                    "Class properties", "must be a list of property names"
                ),
                ErrorCode.INVALID_PROPERTIES,
            )

    return ("", None)


def validate_property(prop: PropertyDefinition) -> tuple[bool, str]:
    """
    Validate a property definition.

    Args:
        prop: The property to validate

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Name is required, non-empty after trimming, at most 255 characters
        - Name starts with a letter; letters, digits, '-', '_' and spaces only
        - Type is one of the canonical property types
        - Cardinality is 'one' or 'many'
    """
    message, code = _property_errors(prop)
    return (code is None, message)


def validate_class(cls_def: ClassDefinition) -> tuple[bool, str]:
    """
    Validate a class definition.

    Validation rules:
        - Name is required, non-empty after trimming, at most 255 characters
        - A class cannot be its own parent
        - Properties must be a list of non-empty names
    """
    message, code = _class_errors(cls_def)
    return (code is None, message)


def ensure_valid_property(prop: PropertyDefinition) -> None:
    """Raise ``ValidationError`` if *prop* is invalid."""
    message, code = _property_errors(prop)
    if code is not None:
        raise ValidationError(message, code, {"name": prop.name})


def ensure_valid_class(cls_def: ClassDefinition) -> None:
    """Raise ``ValidationError`` if *cls_def* is invalid."""
    message, code = _class_errors(cls_def)
    if code is not None:
        raise ValidationError(message, code, {"name": cls_def.name})


def validate_template(template: ParsedTemplate) -> list[str]:
    """Validate every definition in *template*.

    Returns:
        List of error messages prefixed with the offending entity; empty
        when the template is valid.
    """
    errors: list[str] = []
    for prop in template.properties:
        valid, message = validate_property(prop)
        if not valid:
            errors.append(f"property '{prop.name}': {message}")
    for cls_def in template.classes:
        valid, message = validate_class(cls_def)
        if not valid:
            errors.append(f"class '{cls_def.name}': {message}")
    for cycle in _parent_cycles(template.classes):
        chain = " -> ".join([*cycle, cycle[0]])
        errors.append(
            f"class '{cycle[0]}': "
            + format_validation_error("Parent chain", f"is circular ({chain})")
        )
    return errors


def _parent_cycles(classes: list[ClassDefinition]) -> list[list[str]]:
    # Self-parenting is reported per class, so only longer loops are returned.
    parents = {
        normalize_name(c.name): normalize_name(c.parent)
        for c in classes
        if c.parent is not None and c.name.strip()
    }
    cycles: list[list[str]] = []
    visited: set[str] = set()
    for start in parents:
        path: list[str] = []
        node = start
        while node in parents and node not in visited and node not in path:
            path.append(node)
            node = parents[node]
        if node in path:
            cycle = path[path.index(node):]
            if len(cycle) > 1:
                cycles.append(cycle)
        visited.update(path)
    return cycles

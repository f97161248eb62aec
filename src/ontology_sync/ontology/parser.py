"""Template parsing.

``TemplateParser`` is the collaborator interface consumed by the importer
and the sync differ.  ``YamlTemplateParser`` is the bundled
implementation: it reads YAML (and therefore JSON) documents shaped like::

    metadata:
      name: People
      version: "1.2"
    properties:
      - name: email
        type: text
      birthday:            # mapping form: key is the name
        type: date
    classes:
      - name: Person
        parent: Agent
        properties: [email, birthday]
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import pydantic
import yaml

from ontology_sync.errors import ErrorCode, ValidationError
from ontology_sync.ontology.models import (
    ClassDefinition,
    ParsedTemplate,
    PropertyDefinition,
    TemplateMetadata,
)
from ontology_sync.validators import validate_template

logger = logging.getLogger(__name__)


@runtime_checkable
class TemplateParser(Protocol):
    """Turns raw template text into a ``ParsedTemplate``."""

    def parse(self, raw: str) -> ParsedTemplate: ...

    def validate(self, template: ParsedTemplate) -> bool: ...


class YamlTemplateParser:
    """Parse YAML/JSON ontology templates with PyYAML.

    Args:
        strict: When True, ``validate`` raises ``ValidationError`` with
            every collected message instead of returning False.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self.last_errors: list[str] = []

    def parse(self, raw: str) -> ParsedTemplate:
        """Parse *raw* into a template.

        Raises:
            ValidationError: If the text is not valid YAML, is not a
                mapping, or contains malformed entries.
        """
        try:
            data = yaml.safe_load(raw) if raw.strip() else {}
        except yaml.YAMLError as exc:
            raise ValidationError(
                f"Template is not valid YAML: {exc}",
                ErrorCode.INVALID_TEMPLATE,
            ) from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError(
                "Template must be a mapping with 'properties' and/or 'classes'",
                ErrorCode.INVALID_TEMPLATE,
            )

        try:
            template = ParsedTemplate(
                properties=[
                    PropertyDefinition.model_validate(entry)
                    for entry in _entries(data.get("properties"), "properties")
                ],
                classes=[
                    ClassDefinition.model_validate(entry)
                    for entry in _entries(data.get("classes"), "classes")
                ],
                metadata=(
                    TemplateMetadata.model_validate(data["metadata"])
                    if isinstance(data.get("metadata"), dict)
                    else None
                ),
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Template contains malformed definitions: {exc}",
                ErrorCode.INVALID_TEMPLATE,
            ) from exc

        logger.debug(
            "Parsed template: %d properties, %d classes",
            len(template.properties),
            len(template.classes),
        )
        return template

    def validate(self, template: ParsedTemplate) -> bool:
        """Run the definition validators over *template*."""
        self.last_errors = validate_template(template)
        if not self.last_errors:
            return True
        for message in self.last_errors:
            logger.warning("Template validation: %s", message)
        if self.strict:
            raise ValidationError(
                "; ".join(self.last_errors),
                ErrorCode.INVALID_TEMPLATE,
                {"errors": list(self.last_errors)},
            )
        return False


def _entries(section: Any, section_name: str) -> list[dict[str, Any]]:
    """Normalize a list-or-mapping section into a list of dicts."""
    if section is None:
        return []
    if isinstance(section, dict):
        entries = []
        for name, body in section.items():
            body = dict(body or {})
            body.setdefault("name", str(name))
            entries.append(body)
        return entries
    if isinstance(section, list):
        for entry in section:
            if not isinstance(entry, dict):
                raise ValidationError(
                    f"Entries in '{section_name}' must be mappings",
                    ErrorCode.INVALID_TEMPLATE,
                )
        return section
    raise ValidationError(
        f"'{section_name}' must be a list or a mapping",
        ErrorCode.INVALID_TEMPLATE,
    )


def dump_template(template: ParsedTemplate) -> str:
    """Render *template* as YAML that ``YamlTemplateParser`` reads back.

    Unset optional fields are omitted.
    """
    data: dict[str, Any] = {}
    if template.metadata is not None:
        data["metadata"] = template.metadata.model_dump(exclude_none=True)
    data["properties"] = [
        p.model_dump(mode="json", exclude_none=True) for p in template.properties
    ]
    data["classes"] = [
        c.model_dump(mode="json", exclude_none=True) for c in template.classes
    ]
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

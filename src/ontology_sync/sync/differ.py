"""Name-only content diff for the sync path.

The sync engine compares raw *content* (what was synced last vs. what the
source serves now) rather than a template against a store snapshot, so
it reports only which names would be added, updated or removed.  It
reuses the import diff's normalization and field comparison so both
paths agree on what "updated" means.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from ontology_sync.importer.diff import changed_fields
from ontology_sync.naming import normalize_name
from ontology_sync.ontology.models import ParsedTemplate
from ontology_sync.ontology.parser import TemplateParser, YamlTemplateParser
from ontology_sync.sync.models import SyncPreview


@runtime_checkable
class ContentDiffer(Protocol):
    def diff(self, local_content: str | None, remote_content: str) -> SyncPreview: ...


def _index(definitions: list[BaseModel]) -> dict[str, BaseModel]:
    return {normalize_name(d.name): d for d in definitions}


def _compare(
    local: list[BaseModel], remote: list[BaseModel]
) -> tuple[list[str], list[str], list[str]]:
    local_index = _index(local)
    remote_index = _index(remote)
    to_add = [d.name for key, d in remote_index.items() if key not in local_index]
    to_update = [
        d.name
        for key, d in remote_index.items()
        if key in local_index and changed_fields(local_index[key], d)
    ]
    to_remove = [d.name for key, d in local_index.items() if key not in remote_index]
    return (to_add, to_update, to_remove)


class TemplateContentDiffer:
    """Parse both sides with a template parser and compare by name.

    Args:
        parser: Parser for both contents; defaults to ``YamlTemplateParser``.
    """

    def __init__(self, parser: TemplateParser | None = None) -> None:
        self.parser = parser or YamlTemplateParser()

    def diff(self, local_content: str | None, remote_content: str) -> SyncPreview:
        """Return the name-level changes from *local_content* to *remote_content*.

        With no local content every remote entity counts as added.

        Raises:
            ValidationError: If either content cannot be parsed.
        """
        remote = self.parser.parse(remote_content)
        local = (
            self.parser.parse(local_content)
            if local_content
            else ParsedTemplate()
        )
        classes_add, classes_update, classes_remove = _compare(
            local.classes, remote.classes
        )
        props_add, props_update, props_remove = _compare(
            local.properties, remote.properties
        )
        return SyncPreview(
            classes_to_add=classes_add,
            classes_to_update=classes_update,
            classes_to_remove=classes_remove,
            properties_to_add=props_add,
            properties_to_update=props_update,
            properties_to_remove=props_remove,
        )

"""JSON-file entity store.

Keeps the whole ontology in a single JSON document::

    {"version": 1, "properties": [...], "classes": [...]}

Each mutation rewrites the file atomically.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pydantic

from ontology_sync.core.async_utils import run_sync
from ontology_sync.errors import EntityStoreError, ErrorCode
from ontology_sync.file_handler import read_json, write_json_atomic
from ontology_sync.ontology.models import ClassDefinition, PropertyDefinition
from ontology_sync.store.memory import InMemoryEntityStore

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class JsonFileEntityStore(InMemoryEntityStore):
    """Entity store persisted to a JSON file.

    Args:
        path: Location of the JSON document.  A missing file is treated as
            an empty ontology and created on the first write.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        properties, classes = self._load()
        super().__init__(properties=properties, classes=classes)

    def _load(self) -> tuple[list[PropertyDefinition], list[ClassDefinition]]:
        try:
            data = read_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            raise EntityStoreError(
                f"Failed to read entity store {self.path}: {exc}",
                ErrorCode.STORE_ERROR,
                {"path": str(self.path)},
            ) from exc
        if data is None:
            return ([], [])
        try:
            properties = [
                PropertyDefinition.model_validate(p)
                for p in data.get("properties", [])
            ]
            classes = [
                ClassDefinition.model_validate(c)
                for c in data.get("classes", [])
            ]
        except (AttributeError, pydantic.ValidationError) as exc:
            raise EntityStoreError(
                f"Entity store {self.path} is malformed: {exc}",
                ErrorCode.STORE_ERROR,
                {"path": str(self.path)},
            ) from exc
        logger.debug(
            "Loaded %d properties and %d classes from %s",
            len(properties),
            len(classes),
            self.path,
        )
        return (properties, classes)

    async def _persist(
        self,
        properties: dict[str, PropertyDefinition],
        classes: dict[str, ClassDefinition],
    ) -> None:
        document = {
            "version": STORE_FORMAT_VERSION,
            "properties": [
                p.model_dump(exclude_none=True)
                for p in properties.values()
            ],
            "classes": [
                c.model_dump(exclude_none=True)
                for c in classes.values()
            ],
        }
        try:
            await run_sync(write_json_atomic, self.path, document)
        except OSError as exc:
            raise EntityStoreError(
                f"Failed to write entity store {self.path}: {exc}",
                ErrorCode.STORE_ERROR,
                {"path": str(self.path)},
            ) from exc

"""Shared pytest fixtures and collaborator fakes for ontology-sync tests."""

from __future__ import annotations

import textwrap
from typing import Any

import pytest

from ontology_sync.checksum import content_checksum
from ontology_sync.errors import EntityStoreError, ErrorCode
from ontology_sync.ontology.models import ClassDefinition, PropertyDefinition
from ontology_sync.ontology.parser import YamlTemplateParser
from ontology_sync.store.memory import InMemoryEntityStore
from ontology_sync.sync.models import FetchedContent, SyncSource

PEOPLE_TEMPLATE = textwrap.dedent(
    """\
    metadata:
      name: People
      version: "1.0"
    properties:
      - name: email
        type: text
      - name: birthday
        type: date
    classes:
      - name: Person
        properties: [email, birthday]
    """
)

# Same names as PEOPLE_TEMPLATE, but birthday changes type (critical) and
# Person gains a description (non-critical).
PEOPLE_TEMPLATE_V2 = textwrap.dedent(
    """\
    properties:
      - name: email
        type: text
      - name: birthday
        type: datetime
    classes:
      - name: Person
        description: A human being
        properties: [email, birthday]
    """
)


class FailingEntityStore(InMemoryEntityStore):
    """In-memory store that rejects writes to selected names."""

    def __init__(self, fail_on: set[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_on = {name.lower() for name in fail_on}
        self.calls: list[tuple[str, str]] = []

    def _check(self, op: str, name: str) -> None:
        self.calls.append((op, name))
        if name.lower() in self.fail_on:
            raise EntityStoreError(
                f"Store rejected {op} of {name}", ErrorCode.STORE_ERROR
            )

    async def create_property(self, definition: PropertyDefinition):
        self._check("create_property", definition.name)
        return await super().create_property(definition)

    async def update_property(self, name: str, updates: dict[str, Any]):
        self._check("update_property", name)
        return await super().update_property(name, updates)

    async def create_class(self, definition: ClassDefinition):
        self._check("create_class", definition.name)
        return await super().create_class(definition)

    async def update_class(self, name: str, updates: dict[str, Any]):
        self._check("update_class", name)
        return await super().update_class(name, updates)


class ScriptedFetcher:
    """Fetcher returning (or raising) a scripted outcome per call.

    Once the script is exhausted the last outcome repeats.
    """

    def __init__(self, *outcomes: str | Exception) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, float | None]] = []

    async def fetch(
        self, source: SyncSource, timeout: float | None = None
    ) -> FetchedContent:
        self.calls.append((source.id, timeout))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return FetchedContent(content=outcome, checksum=content_checksum(outcome))


class FailingStateStorage:
    """State storage whose every call raises ``OSError``."""

    async def get(self, source_id: str):
        raise OSError("disk unavailable")

    async def set(self, source_id: str, record: dict[str, Any]) -> None:
        raise OSError("disk unavailable")

    async def delete(self, source_id: str) -> None:
        raise OSError("disk unavailable")

    async def keys(self) -> list[str]:
        raise OSError("disk unavailable")


@pytest.fixture
def parser():
    return YamlTemplateParser()


@pytest.fixture
def memory_store():
    return InMemoryEntityStore()


@pytest.fixture
def people_store():
    """Store already holding the PEOPLE_TEMPLATE ontology."""
    return InMemoryEntityStore(
        properties=[
            PropertyDefinition(name="email", type="text"),
            PropertyDefinition(name="birthday", type="date"),
        ],
        classes=[ClassDefinition(name="Person", properties=["email", "birthday"])],
    )


@pytest.fixture
def source():
    return SyncSource(
        id="people", name="People", location="https://example.com/people.yml"
    )

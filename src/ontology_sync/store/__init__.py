"""Entity store interface and bundled implementations."""

from .base import EntityStore, snapshot
from .json_file import JsonFileEntityStore
from .memory import InMemoryEntityStore

__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "JsonFileEntityStore",
    "snapshot",
]

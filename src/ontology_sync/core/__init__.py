"""Core infrastructure shared by the importer and sync packages."""

from .async_utils import run_sync

__all__ = ["run_sync"]

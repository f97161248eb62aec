"""Conflict policies for the importer.

A conflict is an update that touches a critical field.  The policy decides
what the importer does with such updates:

- ``AskPolicy``: Blocks the whole import while any conflict exists so the
  caller can decide manually.
- ``OverwritePolicy``: Applies conflicting updates like any other update.
- ``SkipPolicy``: Drops conflicting updates and applies everything else.

The ``create_conflict_policy()`` factory maps strategy strings to policy
instances.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ontology_sync.importer.models import (
    ClassUpdate,
    ImportPreview,
    PropertyUpdate,
)
from ontology_sync.naming import normalize_name

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictPolicy(Protocol):
    """Protocol that all conflict policies must satisfy."""

    def blocks(self, preview: ImportPreview) -> bool:
        """Return ``True`` if the import must stop before applying."""
        ...  # pragma: no cover

    def select_updates(
        self, preview: ImportPreview
    ) -> tuple[list[ClassUpdate], list[PropertyUpdate]]:
        """Return the class and property updates that should be applied."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class OverwritePolicy:
    """Apply every update, conflicting or not."""

    def blocks(self, preview: ImportPreview) -> bool:
        return False

    def select_updates(
        self, preview: ImportPreview
    ) -> tuple[list[ClassUpdate], list[PropertyUpdate]]:
        if preview.conflicts:
            logger.info(
                "Overwriting %d conflicting definition(s)",
                len(preview.conflicts),
            )
        return (
            list(preview.updated_classes),
            list(preview.updated_properties),
        )


class AskPolicy(OverwritePolicy):
    """Refuse to apply anything while conflicts are unresolved."""

    def blocks(self, preview: ImportPreview) -> bool:
        return bool(preview.conflicts)


class SkipPolicy:
    """Leave conflicting definitions untouched; apply the rest."""

    def blocks(self, preview: ImportPreview) -> bool:
        return False

    def select_updates(
        self, preview: ImportPreview
    ) -> tuple[list[ClassUpdate], list[PropertyUpdate]]:
        conflicted = {
            (c.type, normalize_name(c.name)) for c in preview.conflicts
        }
        classes = [
            u
            for u in preview.updated_classes
            if ("class", normalize_name(u.name)) not in conflicted
        ]
        properties = [
            u
            for u in preview.updated_properties
            if ("property", normalize_name(u.name)) not in conflicted
        ]
        skipped = (
            len(preview.updated_classes)
            + len(preview.updated_properties)
            - len(classes)
            - len(properties)
        )
        if skipped:
            logger.info("Skipping %d conflicting update(s)", skipped)
        return (classes, properties)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "ask": AskPolicy,
    "overwrite": OverwritePolicy,
    "skip": SkipPolicy,
}


def create_conflict_policy(strategy: str) -> ConflictPolicy:
    """Create a conflict policy for the given strategy string.

    Args:
        strategy: One of ``"ask"``, ``"overwrite"``, ``"skip"``.

    Returns:
        A ``ConflictPolicy`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]

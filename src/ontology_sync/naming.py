"""Entity name canonicalization.

The target store lowercases names and folds whitespace into hyphens on
write, so every comparison against stored state goes through
``normalize_name``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

NAME_SEPARATOR = "-"

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Return the canonical comparison key for an entity name.

    Lowercases *name*, strips surrounding whitespace, and replaces each
    run of internal whitespace with a single ``-``.

    >>> normalize_name("  Date  Of Birth ")
    'date-of-birth'
    """
    return _WHITESPACE_RUN.sub(NAME_SEPARATOR, name.strip().lower())


def names_equal(left: str, right: str) -> bool:
    """Return ``True`` if two names are equal after normalization."""
    return normalize_name(left) == normalize_name(right)


def normalize_names(names: Iterable[str] | None) -> list[str] | None:
    """Normalize every name in *names*, preserving order.

    ``None`` passes through unchanged so optional reference lists keep
    their "unset" meaning.
    """
    if names is None:
        return None
    return [normalize_name(n) for n in names]

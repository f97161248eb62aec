"""Content checksums for drift detection.

``content_checksum()`` normalises content (BOM, line-endings, trailing
whitespace) before SHA-256 so a template re-saved on another platform does
not register as a change.
"""

from __future__ import annotations

import hashlib


def normalize_content(content: str) -> str:
    """Apply the checksum normalisation steps to *content*.

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` and lone ``\\r`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.
    """
    text = content.lstrip("\ufeff")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)


def content_checksum(content: str) -> str:
    """Compute a normalised SHA-256 hex digest of *content*."""
    normalised = normalize_content(content)
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()


def verify_checksum(content: str, expected: str) -> bool:
    """Return ``True`` if *content* hashes to *expected*."""
    return content_checksum(content) == expected


def short_checksum(checksum: str, length: int = 8) -> str:
    """Abbreviate *checksum* for log messages and history details."""
    if len(checksum) <= length:
        return checksum
    return f"{checksum[:length]}..."

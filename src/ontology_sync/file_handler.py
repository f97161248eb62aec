"""File handler module: encoding-aware reads and atomic JSON persistence.

Provides the file I/O used by the file fetcher, the JSON entity store and
the JSON sync-state storage.  Sync functions do the I/O; async wrappers
push it onto a worker thread via run_sync().
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

from ontology_sync.core.async_utils import run_sync

# =============================================================================
# Path Validation
# =============================================================================


def validate_file_path(path_str: str) -> Path:
    """Validate and resolve an input file path.

    Args:
        path_str: Path string to an existing file.  Relative paths are
            resolved against the current working directory.

    Returns:
        Resolved Path object pointing to the real file.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the path is not a regular file.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_json(path: Path) -> Any | None:
    """Load JSON from *path*, returning ``None`` if the file is absent.

    Raises:
        json.JSONDecodeError: If the file exists but is not valid JSON.
    """
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def write_json_atomic(path: Path, data: Any) -> None:
    """Persist *data* as JSON to *path* atomically.

    Writes to a temporary file in the same directory then atomically
    replaces the target, so readers never see partial data.  Creates the
    parent directory if it does not exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def delete_file(path: Path) -> bool:
    """Remove *path*; return ``False`` if it did not exist."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


# =============================================================================
# Async Wrappers
# =============================================================================


async def read_file_async(path_str: str) -> tuple[str, str, Path]:
    """Async wrapper: validate path, read file with encoding detection.

    Args:
        path_str: Path string to an existing file.

    Returns:
        Tuple of (content_string, detected_encoding, resolved_path).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the path is not a regular file.
    """
    resolved = await run_sync(validate_file_path, path_str)
    content, encoding = await run_sync(read_file_with_encoding, resolved)
    return (content, encoding, resolved)

"""Content fetchers for sync sources.

Every fetcher raises ``FetchError`` with a code the engine's retry logic
understands: ``NOT_FOUND`` and ``INVALID_SOURCE`` are permanent, the rest
(``NETWORK_ERROR``, ``TIMEOUT``, ``IO_ERROR``) are retried.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

import requests

from ontology_sync import __version__
from ontology_sync.checksum import content_checksum, short_checksum
from ontology_sync.core.async_utils import run_sync
from ontology_sync.errors import ErrorCode, FetchError
from ontology_sync.file_handler import read_file_async
from ontology_sync.sync.models import FetchedContent, SourceType, SyncSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

USER_AGENT = f"ontology-sync/{__version__}"


@runtime_checkable
class ContentFetcher(Protocol):
    async def fetch(
        self, source: SyncSource, timeout: float | None = None
    ) -> FetchedContent: ...


def _require_content(content: str, source: SyncSource) -> None:
    if not content.strip():
        raise FetchError(
            f"Source is empty: {source.location}",
            ErrorCode.INVALID_SOURCE,
            source.id,
        )


class HttpContentFetcher:
    """Fetch sources over HTTP(S) with ``requests``.

    Requests run in a worker thread; each thread keeps its own
    ``requests.Session``.

    Args:
        verify: Verify TLS certificates.
        headers: Extra request headers.
    """

    def __init__(
        self, verify: bool = True, headers: dict[str, str] | None = None
    ) -> None:
        self.verify = verify
        self.headers = {
            "Accept": "text/plain, application/yaml, application/json, */*",
            "User-Agent": USER_AGENT,
            **(headers or {}),
        }
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.verify = self.verify
            session.headers.update(self.headers)
            self._thread_local.session = session
        return self._thread_local.session

    def _get(self, source: SyncSource, timeout: float) -> FetchedContent:
        try:
            response = self._get_session().get(source.location, timeout=timeout)
        except requests.Timeout as exc:
            raise FetchError(
                f"Request timed out after {timeout}s",
                ErrorCode.TIMEOUT,
                source.id,
            ) from exc
        except requests.RequestException as exc:
            raise FetchError(
                f"Network error: {exc}", ErrorCode.NETWORK_ERROR, source.id
            ) from exc

        if response.status_code == 404:
            raise FetchError(
                f"Source not found: {source.location}",
                ErrorCode.NOT_FOUND,
                source.id,
            )
        if not response.ok:
            raise FetchError(
                f"Failed to fetch: {response.status_code} {response.reason}",
                ErrorCode.NETWORK_ERROR,
                source.id,
            )

        content = response.text
        _require_content(content, source)
        return FetchedContent(
            content=content,
            checksum=content_checksum(content),
            last_modified=response.headers.get("Last-Modified"),
            etag=response.headers.get("ETag"),
        )

    async def fetch(
        self, source: SyncSource, timeout: float | None = None
    ) -> FetchedContent:
        timeout = timeout or DEFAULT_TIMEOUT
        logger.debug("Fetching %s (timeout %.1fs)", source.location, timeout)
        fetched = await run_sync(self._get, source, timeout)
        logger.info(
            "Fetched %s: %d chars, checksum %s",
            source.id,
            len(fetched.content),
            short_checksum(fetched.checksum or ""),
        )
        return fetched


class FileContentFetcher:
    """Read sources from the local filesystem with encoding detection."""

    async def fetch(
        self, source: SyncSource, timeout: float | None = None
    ) -> FetchedContent:
        try:
            content, encoding, path = await read_file_async(source.location)
        except FileNotFoundError as exc:
            raise FetchError(
                f"Source not found: {source.location}",
                ErrorCode.NOT_FOUND,
                source.id,
            ) from exc
        except ValueError as exc:
            raise FetchError(
                str(exc), ErrorCode.INVALID_SOURCE, source.id
            ) from exc
        except OSError as exc:
            raise FetchError(
                f"Local file fetch failed: {exc}",
                ErrorCode.IO_ERROR,
                source.id,
            ) from exc

        _require_content(content, source)
        logger.debug("Read %s (%s, %d chars)", path, encoding, len(content))
        return FetchedContent(content=content, checksum=content_checksum(content))


class SourceContentFetcher:
    """Dispatch to the HTTP or file fetcher by ``SyncSource.type``."""

    def __init__(
        self,
        http: ContentFetcher | None = None,
        file: ContentFetcher | None = None,
    ) -> None:
        self._fetchers: dict[SourceType, ContentFetcher] = {
            SourceType.URL: http or HttpContentFetcher(),
            SourceType.FILE: file or FileContentFetcher(),
        }

    async def fetch(
        self, source: SyncSource, timeout: float | None = None
    ) -> FetchedContent:
        fetcher = self._fetchers.get(source.type)
        if fetcher is None:
            raise FetchError(
                f"Unsupported source type: {source.type}",
                ErrorCode.INVALID_SOURCE,
                source.id,
            )
        return await fetcher.fetch(source, timeout)

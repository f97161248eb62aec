"""Sync engine that keeps a store in step with registered template sources.

For each source the ``SyncEngine``:

1. Looks up the registered source (unknown -> ``INVALID_SOURCE``).
2. Fetches the content, retrying transient failures with linear backoff.
3. Compares the content checksum against the last synced checksum.
4. Builds a name-only preview of the changes.
5. Refuses to overwrite flagged local modifications under ``ask``.
6. Runs the apply step, then persists checksum, timestamp and history.

``check_for_updates`` and ``sync`` never raise: every failure is returned
in the ``SyncResult`` and, where a source is known and the call got as far
as fetching, recorded in its history.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from ontology_sync.checksum import content_checksum, short_checksum, verify_checksum
from ontology_sync.core.async_utils import maybe_await, run_with_timeout
from ontology_sync.errors import (
    ApplyError,
    ErrorCode,
    FetchError,
    OntologySyncError,
    StateError,
)
from ontology_sync.importer.importer import OntologyImporter
from ontology_sync.importer.models import AppliedCounts
from ontology_sync.ontology.models import ParsedTemplate
from ontology_sync.ontology.parser import dump_template
from ontology_sync.store.base import EntityStore
from ontology_sync.sync.differ import ContentDiffer, TemplateContentDiffer
from ontology_sync.sync.fetcher import ContentFetcher
from ontology_sync.sync.models import (
    FetchedContent,
    SyncHistoryEntry,
    SyncPreview,
    SyncResult,
    SyncSource,
    SyncState,
    SyncStrategy,
)
from ontology_sync.sync.state import SyncStateStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 1.0

ApplyStep = Callable[
    [SyncSource, FetchedContent, SyncPreview, SyncStrategy],
    Awaitable[AppliedCounts] | AppliedCounts,
]
LocalContentProvider = Callable[[SyncSource], Awaitable[str | None] | str | None]

# Sync strategy -> importer conflict strategy.
_IMPORT_STRATEGY = {
    SyncStrategy.OVERWRITE: "overwrite",
    SyncStrategy.KEEP_LOCAL: "skip",
    SyncStrategy.MERGE: "skip",
    SyncStrategy.ASK: "ask",
}


def count_only_apply_step(
    source: SyncSource,
    fetched: FetchedContent,
    preview: SyncPreview,
    strategy: SyncStrategy,
) -> AppliedCounts:
    """Tracking-only apply step: writes nothing, reports preview counts."""
    return AppliedCounts(
        classes=len(preview.classes_to_add)
        + len(preview.classes_to_update)
        + len(preview.classes_to_remove),
        properties=len(preview.properties_to_add)
        + len(preview.properties_to_update)
        + len(preview.properties_to_remove),
    )


def importer_apply_step(importer: OntologyImporter) -> ApplyStep:
    """Adapt *importer* into a sync apply step.

    The sync strategy selects the importer's conflict strategy
    (``overwrite`` -> overwrite, ``keep-local``/``merge`` -> skip,
    ``ask`` -> ask).  The step raises ``ApplyError`` unless the import
    fully succeeds.
    """

    async def apply(
        source: SyncSource,
        fetched: FetchedContent,
        preview: SyncPreview,
        strategy: SyncStrategy,
    ) -> AppliedCounts:
        options = importer.options.merged(
            conflict_strategy=_IMPORT_STRATEGY[strategy], dry_run=False
        )
        result = await importer.import_template(fetched.content, options)
        if not result.success:
            messages = "; ".join(e.message for e in result.errors)
            raise ApplyError(
                f"Import from {source.id} failed: {messages}",
                details={
                    "applied": result.applied.model_dump(),
                    "errors": [e.code for e in result.errors],
                },
            )
        return result.applied

    return apply


def store_local_content(store: EntityStore) -> LocalContentProvider:
    """Render the current contents of *store* as the local side of a preview.

    The store holds a single ontology, so the same rendering serves every
    source.
    """

    async def local(source: SyncSource) -> str:
        properties = await store.list_properties()
        classes = await store.list_classes()
        return dump_template(
            ParsedTemplate(classes=classes, properties=properties)
        )

    return local


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unchanged(state: SyncState | None, content: str) -> bool:
    return state is not None and verify_checksum(content, state.last_checksum)


class SyncEngine:
    """Coordinate checks and syncs for registered sources.

    Args:
        fetcher: Fetches source content.
        state_store: Sync state; defaults to an in-memory store.
        differ: Name-only differ; defaults to ``TemplateContentDiffer``.
        apply_step: Writes the fetched content; defaults to
            ``count_only_apply_step``.
        local_content: Returns the content last applied for a source, used
            as the left-hand side of the preview.  Without it every remote
            entity is reported as added.
        retry_count: Fetch attempts per call.
        retry_delay: Base delay in seconds; attempt *n* waits
            ``retry_delay * n`` before the next one.
        default_timeout: Per-attempt fetch timeout in seconds.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        state_store: SyncStateStore | None = None,
        differ: ContentDiffer | None = None,
        apply_step: ApplyStep | None = None,
        local_content: LocalContentProvider | None = None,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        default_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.fetcher = fetcher
        self.state_store = state_store or SyncStateStore()
        self.differ = differ or TemplateContentDiffer()
        self.apply_step = apply_step or count_only_apply_step
        self.local_content = local_content
        self.retry_count = max(1, retry_count)
        self.retry_delay = retry_delay
        self.default_timeout = default_timeout
        self._sources: dict[str, SyncSource] = {}

    # ------------------------------------------------------------------
    # Source registry
    # ------------------------------------------------------------------

    def register_source(self, source: SyncSource) -> None:
        self._sources[source.id] = source
        logger.debug("Registered sync source: %s", source.id)

    def unregister_source(self, source_id: str) -> None:
        self._sources.pop(source_id, None)
        logger.debug("Unregistered sync source: %s", source_id)

    def get_source(self, source_id: str) -> SyncSource | None:
        return self._sources.get(source_id)

    def list_sources(self) -> list[SyncSource]:
        return list(self._sources.values())

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    async def check_for_updates(
        self, source_id: str, timeout: float | None = None
    ) -> SyncResult:
        """Report whether *source_id* has changed since the last sync.

        Records a ``check`` history event; applies nothing.
        """
        source = self._sources.get(source_id)
        if source is None:
            return self._unknown_source(source_id)
        try:
            return await self._check(source, timeout)
        except StateError as exc:
            logger.error("Check for %s failed: %s", source_id, exc)
            return SyncResult(
                has_updates=False,
                errors=[str(exc)],
                error_code=exc.code.value,
            )

    async def sync(
        self,
        source_id: str,
        strategy: SyncStrategy | str | None = None,
        dry_run: bool = False,
        timeout: float | None = None,
    ) -> SyncResult:
        """Fetch *source_id* and apply it if it changed.

        Args:
            source_id: Registered source id.
            strategy: Overrides the source's ``default_strategy``.
            dry_run: Stop after computing the preview.
            timeout: Per-attempt fetch timeout in seconds.

        An unrecognised *strategy* is reported as ``INVALID_STRATEGY``
        without fetching or touching the history.
        """
        source = self._sources.get(source_id)
        if source is None:
            return self._unknown_source(source_id)
        try:
            effective = (
                SyncStrategy(strategy)
                if strategy is not None
                else source.default_strategy
            )
        except ValueError:
            logger.error("Invalid sync strategy for %s: %r", source_id, strategy)
            return SyncResult(
                has_updates=False,
                errors=[f"Invalid sync strategy: {strategy}"],
                error_code=ErrorCode.INVALID_STRATEGY.value,
            )
        try:
            return await self._sync(source, effective, dry_run, timeout)
        except StateError as exc:
            logger.error("Sync for %s failed: %s", source_id, exc)
            return SyncResult(
                has_updates=False,
                errors=[str(exc)],
                error_code=exc.code.value,
            )

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    async def get_sync_state(self, source_id: str) -> SyncState | None:
        return await self.state_store.get_state(source_id)

    async def get_history(self, source_id: str) -> list[SyncHistoryEntry]:
        state = await self.state_store.get_state(source_id)
        return list(state.sync_history) if state else []

    async def mark_local_modifications(self, source_id: str) -> None:
        """Flag that the store was edited since the last sync."""
        await self.state_store.update_state(source_id, local_modifications=True)
        logger.debug("Marked local modifications for %s", source_id)

    async def clear_sync_state(self, source_id: str) -> None:
        await self.state_store.clear_state(source_id)
        logger.debug("Cleared sync state for %s", source_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _unknown_source(self, source_id: str) -> SyncResult:
        logger.error("Source not found: %s", source_id)
        return SyncResult(
            has_updates=False,
            errors=[f"Source not found: {source_id}"],
            error_code=ErrorCode.INVALID_SOURCE.value,
        )

    async def _check(
        self, source: SyncSource, timeout: float | None
    ) -> SyncResult:
        logger.info("Checking for updates from source: %s", source.id)
        try:
            fetched = await self._fetch_with_retry(source, timeout)
        except FetchError as exc:
            logger.error("Failed to check %s: %s", source.id, exc)
            await self.state_store.record_sync(
                source.id, "check", "failed", str(exc)
            )
            return SyncResult(
                has_updates=False, errors=[str(exc)], error_code=exc.code.value
            )

        checksum = content_checksum(fetched.content)
        state = await self.state_store.get_state(source.id)
        has_updates = not _unchanged(state, fetched.content)

        preview = None
        errors: list[str] = []
        error_code = None
        if has_updates:
            try:
                preview = await self._preview(source, state, fetched)
            except Exception as exc:
                logger.warning("Failed to compute diff for %s: %s", source.id, exc)
                errors.append(str(exc))
                error_code = ErrorCode.PARSE_ERROR.value

        if errors:
            await self.state_store.record_sync(
                source.id, "check", "failed", "; ".join(errors)
            )
        else:
            await self.state_store.record_sync(
                source.id,
                "check",
                "success",
                f"Updates available (checksum: {short_checksum(checksum)})"
                if has_updates
                else "No updates available",
            )
        logger.info("Check complete for %s: has_updates=%s", source.id, has_updates)
        return SyncResult(
            has_updates=has_updates,
            preview=preview,
            errors=errors,
            error_code=error_code,
        )

    async def _sync(
        self,
        source: SyncSource,
        strategy: SyncStrategy,
        dry_run: bool,
        timeout: float | None,
    ) -> SyncResult:
        logger.info(
            "Starting sync from source: %s with strategy: %s",
            source.id,
            strategy.value,
        )
        try:
            fetched = await self._fetch_with_retry(source, timeout)
        except FetchError as exc:
            logger.error("Failed to sync from %s: %s", source.id, exc)
            await self.state_store.record_sync(
                source.id, "sync", "failed", str(exc)
            )
            return SyncResult(
                has_updates=False, errors=[str(exc)], error_code=exc.code.value
            )

        checksum = content_checksum(fetched.content)
        state = await self.state_store.get_state(source.id)
        if _unchanged(state, fetched.content):
            logger.info("No updates for %s", source.id)
            await self.state_store.record_sync(
                source.id, "sync", "success", "No updates to apply"
            )
            return SyncResult(has_updates=False)

        try:
            preview = await self._preview(source, state, fetched)
        except Exception as exc:
            logger.error("Failed to compute diff for %s: %s", source.id, exc)
            await self.state_store.record_sync(
                source.id, "sync", "failed", str(exc)
            )
            return SyncResult(
                has_updates=True,
                errors=[str(exc)],
                error_code=ErrorCode.PARSE_ERROR.value,
            )

        if (
            state is not None
            and state.local_modifications
            and strategy is SyncStrategy.ASK
        ):
            logger.warning(
                "Local modifications detected for %s, strategy is 'ask'",
                source.id,
            )
            await self.state_store.record_sync(
                source.id,
                "sync",
                "conflicts",
                "Local modifications detected, user input required",
            )
            return SyncResult(
                has_updates=True,
                preview=preview,
                errors=["Local modifications detected"],
                error_code=ErrorCode.CONFLICT.value,
            )

        if dry_run:
            logger.info("Dry run complete for %s", source.id)
            return SyncResult(has_updates=True, preview=preview)

        try:
            applied = await maybe_await(
                self.apply_step(source, fetched, preview, strategy)
            )
        except Exception as exc:
            message = str(exc) or "Failed to apply changes"
            logger.error("Failed to apply changes for %s: %s", source.id, exc)
            await self.state_store.record_sync(source.id, "sync", "failed", message)
            code = (
                exc.code.value
                if isinstance(exc, OntologySyncError)
                else ErrorCode.APPLY_FAILED.value
            )
            return SyncResult(
                has_updates=True, preview=preview, errors=[message], error_code=code
            )

        await self.state_store.update_state(
            source.id,
            last_checksum=checksum,
            last_synced_at=_now(),
            local_modifications=False,
        )
        await self.state_store.record_sync(
            source.id,
            "sync",
            "success",
            f"Applied {applied.classes} classes and {applied.properties} properties",
        )
        logger.info(
            "Sync complete for %s: %d classes, %d properties",
            source.id,
            applied.classes,
            applied.properties,
        )
        return SyncResult(has_updates=True, preview=preview, applied=applied)

    async def _preview(
        self,
        source: SyncSource,
        state: SyncState | None,
        fetched: FetchedContent,
    ) -> SyncPreview:
        local = None
        if state is not None and self.local_content is not None:
            local = await maybe_await(self.local_content(source))
        return self.differ.diff(local, fetched.content)

    async def _fetch_once(
        self, source: SyncSource, timeout: float
    ) -> FetchedContent:
        try:
            return await run_with_timeout(
                self.fetcher.fetch(source, timeout), timeout
            )
        except FetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise FetchError(
                f"Request timed out after {timeout}s",
                ErrorCode.TIMEOUT,
                source.id,
            ) from exc
        except Exception as exc:
            raise FetchError(
                f"Network error: {exc}", ErrorCode.NETWORK_ERROR, source.id
            ) from exc

    async def _fetch_with_retry(
        self, source: SyncSource, timeout: float | None
    ) -> FetchedContent:
        """Fetch with up to ``retry_count`` attempts.

        Permanent failures (``NOT_FOUND``, ``INVALID_SOURCE``) are raised
        immediately without further attempts.
        """
        effective_timeout = timeout or self.default_timeout
        last_error: FetchError | None = None

        for attempt in range(1, self.retry_count + 1):
            try:
                return await self._fetch_once(source, effective_timeout)
            except FetchError as exc:
                last_error = exc
                logger.warning(
                    "Fetch attempt %d/%d failed for %s: %s",
                    attempt,
                    self.retry_count,
                    source.id,
                    exc,
                )
                if not exc.transient:
                    raise
                if attempt < self.retry_count:
                    await asyncio.sleep(self.retry_delay * attempt)

        assert last_error is not None
        raise last_error

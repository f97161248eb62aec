"""Tests for ontology_sync.sync.engine.

Covers:
- Source registry and unknown sources
- check_for_updates: checksum gating, preview, history
- sync: apply, checksum gating, dry run, local-modification conflicts,
  apply and parse failures, invalid strategies
- Fetch retry with linear backoff, permanent failures, timeouts
- State failures surfacing as results
- The importer-backed apply step and store-rendered local content
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ontology_sync.checksum import content_checksum
from ontology_sync.errors import ApplyError, ErrorCode, FetchError
from ontology_sync.importer.importer import OntologyImporter
from ontology_sync.importer.models import AppliedCounts, ImportOptions
from ontology_sync.sync.engine import (
    SyncEngine,
    count_only_apply_step,
    importer_apply_step,
    store_local_content,
)
from ontology_sync.sync.models import SyncPreview, SyncStrategy
from ontology_sync.sync.state import SyncStateStore

from conftest import (
    PEOPLE_TEMPLATE,
    PEOPLE_TEMPLATE_V2,
    FailingStateStorage,
    ScriptedFetcher,
)


class RecordingApplyStep:
    """Apply step that records its calls and returns fixed counts."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = []

    def __call__(self, source, fetched, preview, strategy):
        self.calls.append((source.id, strategy))
        if self.error is not None:
            raise self.error
        return AppliedCounts(classes=1, properties=2)


def _engine(source, *outcomes, **kwargs):
    fetcher = ScriptedFetcher(*outcomes)
    engine = SyncEngine(fetcher, retry_delay=0, **kwargs)
    engine.register_source(source)
    return engine, fetcher


def _network_error():
    return FetchError("connection reset", ErrorCode.NETWORK_ERROR, "people")


class TestRegistry:
    """Tests for source registration."""

    def test_register_and_list(self, source):
        engine = SyncEngine(ScriptedFetcher(PEOPLE_TEMPLATE))
        engine.register_source(source)
        assert engine.get_source("people") == source
        assert engine.list_sources() == [source]
        engine.unregister_source("people")
        assert engine.get_source("people") is None
        engine.unregister_source("people")

    async def test_unknown_source(self):
        engine = SyncEngine(ScriptedFetcher(PEOPLE_TEMPLATE))
        for result in (
            await engine.check_for_updates("ghost"),
            await engine.sync("ghost"),
        ):
            assert not result.has_updates
            assert result.errors == ["Source not found: ghost"]
            assert result.error_code == ErrorCode.INVALID_SOURCE.value
        assert await engine.state_store.list_source_ids() == []


class TestCheckForUpdates:
    """Tests for SyncEngine.check_for_updates()."""

    async def test_first_check_has_updates(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        result = await engine.check_for_updates("people")

        assert result.success
        assert result.has_updates
        assert result.preview.classes_to_add == ["Person"]
        history = await engine.get_history("people")
        assert history[0].action == "check"
        checksum = content_checksum(PEOPLE_TEMPLATE)
        assert history[0].details == f"Updates available (checksum: {checksum[:8]}...)"

    async def test_check_does_not_apply_or_store_checksum(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        await engine.check_for_updates("people")
        assert apply_step.calls == []
        assert (await engine.get_sync_state("people")).last_checksum == ""

    async def test_no_updates_after_sync(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        await engine.sync("people")
        result = await engine.check_for_updates("people")
        assert not result.has_updates
        assert result.preview is None
        assert (await engine.get_history("people"))[0].details == "No updates available"

    async def test_resaved_content_reports_no_updates(self, source):
        resaved = PEOPLE_TEMPLATE.replace("\n", "\r\n") + "\r\n\r\n"
        engine, _ = _engine(source, PEOPLE_TEMPLATE, resaved)
        await engine.sync("people")
        result = await engine.check_for_updates("people")
        assert not result.has_updates
        assert (await engine.get_history("people"))[0].details == "No updates available"

    async def test_fetch_failure_recorded(self, source):
        engine, _ = _engine(
            source, FetchError("gone", ErrorCode.NOT_FOUND, "people")
        )
        result = await engine.check_for_updates("people")
        assert result.error_code == ErrorCode.NOT_FOUND.value
        entry = (await engine.get_history("people"))[0]
        assert (entry.action, entry.result, entry.details) == ("check", "failed", "gone")

    async def test_unparseable_content_still_reports_updates(self, source):
        engine, _ = _engine(source, "properties: [broken")
        result = await engine.check_for_updates("people")
        assert result.has_updates
        assert result.preview is None
        assert result.error_code == ErrorCode.PARSE_ERROR.value
        history = await engine.get_history("people")
        assert [(h.action, h.result) for h in history] == [("check", "failed")]
        assert history[0].details == result.errors[0]
        assert (await engine.get_sync_state("people")).last_checksum == ""

    async def test_timeout_passed_to_fetcher(self, source):
        engine, fetcher = _engine(source, PEOPLE_TEMPLATE)
        await engine.check_for_updates("people", timeout=5)
        assert fetcher.calls == [("people", 5)]


class TestSync:
    """Tests for SyncEngine.sync()."""

    async def test_first_sync_applies_and_records(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        result = await engine.sync("people", strategy="overwrite")

        assert result.success
        assert result.has_updates
        assert result.applied == AppliedCounts(classes=1, properties=2)
        assert apply_step.calls == [("people", SyncStrategy.OVERWRITE)]

        state = await engine.get_sync_state("people")
        assert state.last_checksum == content_checksum(PEOPLE_TEMPLATE)
        assert state.last_synced_at
        assert state.local_modifications is False
        entry = state.sync_history[0]
        assert (entry.action, entry.result) == ("sync", "success")
        assert entry.details == "Applied 1 classes and 2 properties"

    async def test_second_identical_sync_is_skipped(self, source):
        apply_step = RecordingApplyStep()
        engine, fetcher = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        await engine.sync("people")
        result = await engine.sync("people")

        assert result.success
        assert not result.has_updates
        assert len(apply_step.calls) == 1
        assert len(fetcher.calls) == 2
        assert (await engine.get_history("people"))[0].details == "No updates to apply"

    async def test_line_ending_changes_are_not_updates(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(
            source,
            PEOPLE_TEMPLATE,
            PEOPLE_TEMPLATE.replace("\n", "\r\n") + "\r\n\r\n",
            apply_step=apply_step,
        )
        await engine.sync("people")
        result = await engine.sync("people")
        assert not result.has_updates
        assert len(apply_step.calls) == 1

    async def test_changed_content_applies_again(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(
            source, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2, apply_step=apply_step
        )
        await engine.sync("people")
        result = await engine.sync("people")
        assert result.has_updates
        assert len(apply_step.calls) == 2
        state = await engine.get_sync_state("people")
        assert state.last_checksum == content_checksum(PEOPLE_TEMPLATE_V2)

    async def test_default_apply_step_counts_preview(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        result = await engine.sync("people")
        assert result.applied == AppliedCounts(classes=1, properties=2)

    async def test_dry_run_returns_preview_only(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        result = await engine.sync("people", dry_run=True)

        assert result.has_updates
        assert result.preview.properties_to_add == ["email", "birthday"]
        assert result.applied is None
        assert apply_step.calls == []
        assert await engine.get_sync_state("people") is None

    async def test_local_modifications_block_ask(self, source):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(
            source, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2, apply_step=apply_step
        )
        await engine.sync("people")
        await engine.mark_local_modifications("people")
        result = await engine.sync("people")

        assert not result.success
        assert result.has_updates
        assert result.preview is not None
        assert result.errors == ["Local modifications detected"]
        assert result.error_code == ErrorCode.CONFLICT.value
        assert len(apply_step.calls) == 1
        state = await engine.get_sync_state("people")
        assert state.last_checksum == content_checksum(PEOPLE_TEMPLATE)
        entry = state.sync_history[0]
        assert (entry.result, entry.details) == (
            "conflicts",
            "Local modifications detected, user input required",
        )

    @pytest.mark.parametrize("strategy", ["overwrite", "merge", "keep-local"])
    async def test_other_strategies_proceed_and_clear_flag(self, source, strategy):
        apply_step = RecordingApplyStep()
        engine, _ = _engine(
            source, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2, apply_step=apply_step
        )
        await engine.sync("people")
        await engine.mark_local_modifications("people")
        result = await engine.sync("people", strategy=strategy)

        assert result.success
        assert apply_step.calls[-1] == ("people", SyncStrategy(strategy))
        assert (await engine.get_sync_state("people")).local_modifications is False

    async def test_no_state_means_no_conflict(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        await engine.mark_local_modifications("other")
        assert (await engine.sync("people")).success

    async def test_apply_failure_keeps_checksum(self, source):
        apply_step = RecordingApplyStep(RuntimeError("store offline"))
        engine, _ = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        result = await engine.sync("people")

        assert result.errors == ["store offline"]
        assert result.error_code == ErrorCode.APPLY_FAILED.value
        assert result.preview is not None
        state = await engine.get_sync_state("people")
        assert state.last_checksum == ""
        assert state.sync_history[0].result == "failed"

        apply_step.error = None
        assert (await engine.sync("people")).has_updates

    async def test_apply_error_code_preserved(self, source):
        error = ApplyError("bad op", ErrorCode.UNKNOWN_OPERATION)
        engine, _ = _engine(
            source, PEOPLE_TEMPLATE, apply_step=RecordingApplyStep(error)
        )
        result = await engine.sync("people")
        assert result.error_code == ErrorCode.UNKNOWN_OPERATION.value

    async def test_async_apply_step(self, source):
        async def apply_step(source, fetched, preview, strategy):
            return AppliedCounts(classes=5)

        engine, _ = _engine(source, PEOPLE_TEMPLATE, apply_step=apply_step)
        assert (await engine.sync("people")).applied.classes == 5

    async def test_parse_failure(self, source):
        engine, _ = _engine(source, "classes: 5")
        result = await engine.sync("people")
        assert result.has_updates
        assert result.error_code == ErrorCode.PARSE_ERROR.value
        assert (await engine.get_history("people"))[0].result == "failed"

    async def test_invalid_strategy(self, source):
        engine, fetcher = _engine(source, PEOPLE_TEMPLATE)
        result = await engine.sync("people", strategy="yolo")
        assert not result.has_updates
        assert result.error_code == ErrorCode.INVALID_STRATEGY.value
        assert result.errors == ["Invalid sync strategy: yolo"]
        assert fetcher.calls == []
        assert await engine.get_history("people") == []

    async def test_state_failure_becomes_result(self, source):
        engine, _ = _engine(
            source,
            PEOPLE_TEMPLATE,
            state_store=SyncStateStore(FailingStateStorage()),
        )
        for result in (
            await engine.check_for_updates("people"),
            await engine.sync("people"),
        ):
            assert not result.success
            assert result.error_code == ErrorCode.STATE_ERROR.value


class TestRetry:
    """Tests for fetch retry and backoff."""

    async def test_transient_failures_retried_with_linear_backoff(self, source):
        engine, fetcher = _engine(
            source, _network_error(), _network_error(), PEOPLE_TEMPLATE
        )
        engine.retry_delay = 1.0
        with patch(
            "ontology_sync.sync.engine.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            result = await engine.sync("people")

        assert result.success
        assert len(fetcher.calls) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_exhausted_retries(self, source):
        engine, fetcher = _engine(source, _network_error())
        result = await engine.check_for_updates("people")
        assert len(fetcher.calls) == 3
        assert result.error_code == ErrorCode.NETWORK_ERROR.value
        assert result.errors == ["connection reset"]

    async def test_retry_count_configurable(self, source):
        engine, fetcher = _engine(source, _network_error(), retry_count=5)
        await engine.sync("people")
        assert len(fetcher.calls) == 5

    @pytest.mark.parametrize("code", [ErrorCode.NOT_FOUND, ErrorCode.INVALID_SOURCE])
    async def test_permanent_failures_not_retried(self, source, code):
        engine, fetcher = _engine(source, FetchError("nope", code, "people"))
        with patch(
            "ontology_sync.sync.engine.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            result = await engine.sync("people")
        assert len(fetcher.calls) == 1
        sleep.assert_not_awaited()
        assert result.error_code == code.value

    async def test_unexpected_exception_is_network_error(self, source):
        engine, fetcher = _engine(source, RuntimeError("boom"), PEOPLE_TEMPLATE)
        result = await engine.sync("people")
        assert result.success
        assert len(fetcher.calls) == 2

    async def test_slow_fetch_times_out(self, source):
        class SlowFetcher:
            async def fetch(self, source, timeout=None):
                await asyncio.sleep(5)

        engine = SyncEngine(SlowFetcher(), retry_count=1, retry_delay=0)
        engine.register_source(source)
        result = await engine.sync("people", timeout=0.01)
        assert result.error_code == ErrorCode.TIMEOUT.value
        assert result.errors == ["Request timed out after 0.01s"]


class TestStateHelpers:
    """Tests for history and state helpers."""

    async def test_get_history_unknown(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        assert await engine.get_history("people") == []

    async def test_clear_sync_state(self, source):
        engine, _ = _engine(source, PEOPLE_TEMPLATE)
        await engine.sync("people")
        await engine.clear_sync_state("people")
        assert await engine.get_sync_state("people") is None
        assert (await engine.sync("people")).has_updates


class TestImporterIntegration:
    """Tests for importer_apply_step and store_local_content."""

    def _engine(self, source, parser, store, *outcomes):
        importer = OntologyImporter(parser, store)
        return _engine(
            source,
            *outcomes,
            apply_step=importer_apply_step(importer),
            local_content=store_local_content(store),
        )

    async def test_sync_writes_store(self, source, parser, memory_store):
        engine, _ = self._engine(source, parser, memory_store, PEOPLE_TEMPLATE)
        result = await engine.sync("people")
        assert result.applied == AppliedCounts(classes=1, properties=2)
        assert [c.name for c in await memory_store.list_classes()] == ["person"]

    async def test_failing_progress_listener_does_not_fail_sync(
        self, source, parser, memory_store
    ):
        def on_progress(progress):
            raise RuntimeError("listener gone")

        importer = OntologyImporter(
            parser, memory_store, ImportOptions(on_progress=on_progress)
        )
        engine, _ = _engine(
            source,
            PEOPLE_TEMPLATE,
            apply_step=importer_apply_step(importer),
            local_content=store_local_content(memory_store),
        )
        result = await engine.sync("people")
        assert result.error_code is None
        assert result.applied == AppliedCounts(classes=1, properties=2)
        assert (await engine.get_history("people"))[0].result == "success"

    async def test_preview_compares_against_store(self, source, parser, memory_store):
        engine, _ = self._engine(
            source, parser, memory_store, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2
        )
        await engine.sync("people")
        result = await engine.check_for_updates("people")
        assert result.preview == SyncPreview(
            classes_to_update=["Person"], properties_to_update=["birthday"]
        )

    async def test_overwrite_applies_conflicting_update(self, source, parser, memory_store):
        engine, _ = self._engine(
            source, parser, memory_store, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2
        )
        await engine.sync("people")
        result = await engine.sync("people", strategy="overwrite")
        assert result.applied == AppliedCounts(classes=1, properties=1)
        types = {p.name: p.type for p in await memory_store.list_properties()}
        assert types["birthday"] == "datetime"

    async def test_ask_with_conflicts_fails_apply(self, source, parser, memory_store):
        engine, _ = self._engine(
            source, parser, memory_store, PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2
        )
        await engine.sync("people")
        result = await engine.sync("people", strategy="ask")
        assert result.error_code == ErrorCode.APPLY_FAILED.value
        assert "conflict(s) require resolution" in result.errors[0]

    async def test_local_content_not_read_before_first_sync(self, source):
        calls = []

        def local_content(src):
            calls.append(src.id)
            return None

        engine, _ = _engine(source, PEOPLE_TEMPLATE, local_content=local_content)
        await engine.check_for_updates("people")
        assert calls == []
        await engine.sync("people")
        await engine.sync("people", dry_run=True)
        assert calls == []


def test_count_only_apply_step(source):
    preview = SyncPreview(
        classes_to_add=["a"],
        classes_to_remove=["b"],
        properties_to_update=["c"],
    )
    counts = count_only_apply_step(source, None, preview, SyncStrategy.ASK)
    assert counts == AppliedCounts(classes=2, properties=1)

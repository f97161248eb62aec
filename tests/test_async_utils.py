"""
Tests for async_utils module.

Covers run_sync, run_with_timeout and maybe_await.
"""

import asyncio

import pytest

from ontology_sync.core.async_utils import maybe_await, run_sync, run_with_timeout


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_propagates_exceptions():
    """Exceptions raised in the worker thread reach the caller."""

    def _fail():
        raise OSError("disk unavailable")

    with pytest.raises(OSError, match="disk unavailable"):
        await run_sync(_fail)


async def test_run_with_timeout_returns_result():
    """A fast awaitable completes normally."""
    assert await run_with_timeout(asyncio.sleep(0, result="done"), 1) == "done"


async def test_run_with_timeout_expires():
    """A slow awaitable raises TimeoutError."""
    with pytest.raises(asyncio.TimeoutError):
        await run_with_timeout(asyncio.sleep(5), 0.01)


async def test_run_with_timeout_none_is_unbounded():
    """timeout=None awaits without a bound."""
    assert await run_with_timeout(asyncio.sleep(0, result=1), None) == 1


async def test_maybe_await_plain_value():
    """Non-awaitables are returned as-is."""
    assert await maybe_await(5) == 5
    assert await maybe_await(None) is None


async def test_maybe_await_coroutine():
    """Coroutines are awaited."""

    async def _value():
        return "async"

    assert await maybe_await(_value()) == "async"

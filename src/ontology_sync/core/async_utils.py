"""Async utilities for bridging blocking I/O into the async engine."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap blocking ``requests`` calls and file reads performed by
    the fetchers and file-backed stores.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        content, _ = await run_sync(read_file_with_encoding, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_with_timeout(
    awaitable: Awaitable[T], timeout: float | None
) -> T:
    """Await *awaitable*, abandoning it after *timeout* seconds.

    ``None`` disables the bound.  Raises ``TimeoutError`` when the bound
    is exceeded.
    """
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


async def maybe_await(value: Any) -> Any:
    """Return *value*, awaiting it first if it is awaitable.

    Collaborator callbacks (progress handlers, apply steps) may be plain
    functions or coroutines.
    """
    if asyncio.iscoroutine(value) or isinstance(value, asyncio.Future):
        return await value
    return value

"""Driving coroutines from synchronous callers (Celery tasks, CLI commands)."""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")

_local = threading.local()


def _worker_loop() -> asyncio.AbstractEventLoop:
    """The event loop owned by the calling thread, created on first use."""
    loop: asyncio.AbstractEventLoop | None = getattr(_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _local.loop = loop
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion and return its result.

    Each thread keeps one loop for its lifetime. It is never closed between
    calls: FFmpeg subprocess transports and httpx connection pools opened
    during a render stay bound to the loop that created them.

    Raises:
        RuntimeError: If called from inside a running event loop
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return _worker_loop().run_until_complete(coro)

    coro.close()
    raise RuntimeError("run_async() cannot be called from a running event loop")

"""Tests for running coroutines from synchronous code."""

import asyncio
import threading

import pytest

from scene_studio.utils import run_async


async def _current_loop() -> asyncio.AbstractEventLoop:
    return asyncio.get_running_loop()


class TestRunAsync:
    def test_returns_result(self):
        async def add(a: int, b: int) -> int:
            await asyncio.sleep(0)
            return a + b

        assert run_async(add(2, 3)) == 5

    def test_loop_is_reused_within_a_thread(self):
        """Sequential calls share one loop so loop-bound clients survive."""
        first = run_async(_current_loop())
        second = run_async(_current_loop())

        assert first is second
        assert not first.is_closed()

    def test_threads_get_their_own_loop(self):
        main_loop = run_async(_current_loop())
        seen: list[asyncio.AbstractEventLoop] = []

        thread = threading.Thread(target=lambda: seen.append(run_async(_current_loop())))
        thread.start()
        thread.join()

        assert seen and seen[0] is not main_loop

    @pytest.mark.asyncio
    async def test_refuses_running_loop(self):
        with pytest.raises(RuntimeError, match="running event loop"):
            run_async(_current_loop())

"""Tests for the adaptive task queue."""

import asyncio

import pytest

from src.utils.queue import AdaptiveTaskQueue, map_concurrency


async def _ok() -> str:
    return "ok"


async def _fail() -> None:
    raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_concurrency_ramps_up_after_success_streak():
    """The limit grows only once the streak exceeds ``ramp_up_after``."""
    queue = AdaptiveTaskQueue(initial_concurrency=2, ramp_up_after=5)

    for _ in range(5):
        await queue.add(_ok)
    assert queue.concurrency == 2

    await queue.add(_ok)
    assert queue.concurrency == 3


@pytest.mark.asyncio
async def test_failure_halves_concurrency_with_floor():
    queue = AdaptiveTaskQueue(initial_concurrency=3, min_concurrency=1)

    with pytest.raises(RuntimeError):
        await queue.add(_fail)
    assert queue.concurrency == 1

    with pytest.raises(RuntimeError):
        await queue.add(_fail)
    assert queue.concurrency == 1


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_maximum():
    queue = AdaptiveTaskQueue(initial_concurrency=2, max_concurrency=2, ramp_up_after=1)

    for _ in range(10):
        await queue.add(_ok)

    assert queue.concurrency == 2


@pytest.mark.asyncio
async def test_tasks_beyond_limit_wait_and_run_in_fifo_order():
    """With one slot, queued tasks start in the order they were added."""
    queue = AdaptiveTaskQueue(initial_concurrency=1, max_concurrency=1)
    started: list[int] = []
    peak = 0

    def make_task(n: int):
        async def _task() -> int:
            nonlocal peak
            started.append(n)
            peak = max(peak, queue.running)
            await asyncio.sleep(0)
            return n

        return _task

    results = await asyncio.gather(*(queue.add(make_task(n)) for n in range(5)))

    assert results == [0, 1, 2, 3, 4]
    assert started == [0, 1, 2, 3, 4]
    assert peak == 1
    assert queue.running == 0
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_map_concurrency_preserves_order_and_raises_first_error():
    async def double(n: int) -> int:
        await asyncio.sleep(0)
        return n * 2

    assert await map_concurrency([1, 2, 3], double) == [2, 4, 6]

    async def explode(n: int) -> int:
        if n == 2:
            raise ValueError("two")
        return n

    with pytest.raises(ValueError, match="two"):
        await map_concurrency([1, 2, 3], explode)

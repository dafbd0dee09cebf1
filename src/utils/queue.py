"""Adaptive concurrency queue for target API calls."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from typing import TypeVar

from src import log

__all__ = ["AdaptiveTaskQueue", "map_concurrency"]

T = TypeVar("T")
R = TypeVar("R")


class AdaptiveTaskQueue:
    """Task queue whose concurrency limit reacts to task outcomes.

    Every success extends a streak; once the streak exceeds ``ramp_up_after``
    the limit grows by one (up to ``max_concurrency``). Any failure halves the
    limit (down to ``min_concurrency``) and resets the streak. Tasks beyond the
    limit wait in FIFO order and are admitted as soon as a slot frees up.

    All bookkeeping happens synchronously between awaits, so it is consistent
    for any number of in-flight tasks on one event loop.
    """

    def __init__(
        self,
        name: str = "queue",
        initial_concurrency: int = 2,
        min_concurrency: int = 1,
        max_concurrency: int = 20,
        ramp_up_after: int = 5,
    ) -> None:
        """Initialize the queue.

        Args:
            name (str): Label used in log messages.
            initial_concurrency (int): Starting number of concurrent tasks.
            min_concurrency (int): Floor for the concurrency limit.
            max_concurrency (int): Ceiling for the concurrency limit.
            ramp_up_after (int): Success streak length that must be exceeded
                before the limit grows.
        """
        self.name = name
        self.min_concurrency = min_concurrency
        self.max_concurrency = max_concurrency
        self.ramp_up_after = ramp_up_after
        self.concurrency = max(
            min_concurrency, min(initial_concurrency, max_concurrency)
        )

        self._running = 0
        self._success_streak = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def running(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._running

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a slot."""
        return len(self._waiters)

    async def add(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once a slot is available and return its result.

        Args:
            task (Callable[[], Awaitable[T]]): Zero-argument coroutine factory.

        Returns:
            T: Whatever the task returns.

        Raises:
            Exception: Whatever the task raises, after it is recorded as a failure.
        """
        await self._acquire()
        try:
            result = await task()
        except Exception:
            self._record_failure()
            raise
        else:
            self._record_success()
            return result
        finally:
            self._running -= 1
            self._admit()

    async def _acquire(self) -> None:
        if self._running < self.concurrency and not self._waiters:
            self._running += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            elif waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation
                self._running -= 1
                self._admit()
            raise

    def _admit(self) -> None:
        while self._waiters and self._running < self.concurrency:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            self._running += 1
            waiter.set_result(None)

    def _record_success(self) -> None:
        self._success_streak += 1
        if self._success_streak > self.ramp_up_after:
            self._success_streak = 0
            if self.concurrency < self.max_concurrency:
                self.concurrency += 1
                log.debug(f"{self.name}: concurrency increased to {self.concurrency}")
                self._admit()

    def _record_failure(self) -> None:
        self._success_streak = 0
        reduced = max(self.min_concurrency, self.concurrency // 2)
        if reduced != self.concurrency:
            log.warning(
                f"{self.name}: task failed, reducing concurrency "
                f"{self.concurrency} -> {reduced}"
            )
            self.concurrency = reduced


async def map_concurrency(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    queue: AdaptiveTaskQueue | None = None,
) -> list[R]:
    """Apply ``fn`` to every item through an adaptive queue.

    Results are returned in input order. The first exception propagates once
    every task has finished.

    Args:
        items (Iterable[T]): Inputs.
        fn (Callable[[T], Awaitable[R]]): Coroutine function applied to each input.
        queue (AdaptiveTaskQueue | None): Queue to run through; a fresh one with
            default bounds is used when omitted.

    Returns:
        list[R]: One result per input.
    """
    queue = queue or AdaptiveTaskQueue()
    results = await asyncio.gather(
        *(queue.add(partial(fn, item)) for item in items), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results

"""Retry helper for individual network calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from src import log
from src.exceptions import TargetRequestError

__all__ = ["is_retryable", "retry_operation"]

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Decide whether an error is worth another attempt.

    HTTP errors are retried only when their status says so (408, 429, 5xx).
    Any other error, a connection reset for example, counts as transient.
    """
    if isinstance(exc, TargetRequestError):
        return exc.retryable
    return True


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    name: str,
    *,
    retries: int = 5,
    delay: float = 2.0,
    backoff: float = 1.0,
    should_retry: Callable[[BaseException], bool] = is_retryable,
) -> T:
    """Run ``operation`` until it succeeds or ``retries`` attempts are used up.

    Args:
        operation (Callable[[], Awaitable[T]]): Zero-argument coroutine factory,
            called once per attempt.
        name (str): Human readable description used in log messages.
        retries (int): Maximum number of attempts.
        delay (float): Seconds to wait before the second attempt.
        backoff (float): Multiplier applied to the delay after every retry.
        should_retry (Callable[[BaseException], bool]): Predicate deciding whether
            a failure is transient.

    Returns:
        T: The operation's result.

    Raises:
        Exception: The last error once attempts are exhausted, or immediately
            when ``should_retry`` rejects it.
    """
    attempt = 1
    wait = delay
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= retries or not should_retry(e):
                raise
            log.warning(
                f"Failed to {name}, retrying in {wait:g}s... ({attempt}/{retries}): "
                f"{e}"
            )
            await asyncio.sleep(wait)
            attempt += 1
            wait *= backoff

"""Tag ownership and diff calculation."""

from collections.abc import Callable, Hashable, Iterable
from functools import partial
from typing import TypeVar

__all__ = ["next_labels", "next_tags", "same_tags"]

T = TypeVar("T", bound=Hashable)


def _identity(value: T) -> Hashable:
    return value


def next_tags(
    current: Iterable[T],
    managed: Iterable[T],
    desired: Iterable[T],
    key: Callable[[T], Hashable] = _identity,
) -> set[T]:
    """Compute an item's tags after a sync: ``(current - managed) | desired``.

    Tags outside ``managed`` belong to the user and are always kept. Tags inside
    ``managed`` are replaced wholesale by ``desired``, which removes managed tags
    that are no longer wanted. Applying the result again is a no-op.

    Args:
        current (Iterable[T]): Tags the item carries right now.
        managed (Iterable[T]): Tags this run may add or remove.
        desired (Iterable[T]): Tags the item should carry from this run.
        key (Callable[[T], Hashable]): Comparison key. Tags with equal keys are
            the same tag; the spelling already on the item is kept.

    Returns:
        set[T]: The item's next tag set.
    """
    managed_keys = {key(tag) for tag in managed}
    result: dict[Hashable, T] = {}
    for tag in current:
        k = key(tag)
        if k not in managed_keys:
            result.setdefault(k, tag)
    for tag in desired:
        result.setdefault(key(tag), tag)
    return set(result.values())


# Plex labels compare case-insensitively
next_labels = partial(next_tags, key=str.casefold)


def same_tags(
    left: Iterable[T], right: Iterable[T], key: Callable[[T], Hashable] = _identity
) -> bool:
    """Whether two tag collections contain the same tags under ``key``."""
    return {key(tag) for tag in left} == {key(tag) for tag in right}

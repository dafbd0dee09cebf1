"""Yearly activity windows for seasonal lists."""

from datetime import date

from src.exceptions import InvalidScheduleError

__all__ = ["is_active"]


def _parse_month_day(value: str) -> tuple[int, int]:
    try:
        month, day = (int(part) for part in value.split("-", 1))
    except ValueError as e:
        raise InvalidScheduleError(f"'{value}' is not a valid MM-DD date") from e
    if not (1 <= month <= 12 and 1 <= day <= 31):
        raise InvalidScheduleError(f"'{value}' is not a valid MM-DD date")
    return month, day


def is_active(
    active_from: str | None, active_until: str | None, today: date | None = None
) -> bool:
    """Check whether a list's yearly window contains ``today``.

    Both bounds are inclusive ``MM-DD`` strings. A window whose start lies after
    its end wraps around the new year (``12-01`` to ``01-15``). A missing bound
    leaves that side open.

    Args:
        active_from (str | None): First active day.
        active_until (str | None): Last active day.
        today (date | None): Reference date, defaults to the local date.

    Returns:
        bool: True if the list should be synchronized today.
    """
    if not active_from and not active_until:
        return True

    today = today or date.today()
    current = (today.month, today.day)
    start = _parse_month_day(active_from) if active_from else (1, 1)
    end = _parse_month_day(active_until) if active_until else (12, 31)

    if start <= end:
        return start <= current <= end
    return current >= start or current <= end

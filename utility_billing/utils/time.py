"""Time Utilities for UTC management"""

from datetime import date, datetime, timezone


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_utc_today() -> date:
    return get_utc_now().date()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month"""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    start = date(year, month, 1)
    if month == 12:
        next_start = date(year + 1, 1, 1)
    else:
        next_start = date(year, month + 1, 1)
    return start, date.fromordinal(next_start.toordinal() - 1)

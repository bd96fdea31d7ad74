"""
Date arithmetic shared by the classification, scheduling, scoring and
campaign services.

All timestamps are timezone-aware UTC. Calendar fields (review dates,
anniversaries) are plain dates.
"""

import calendar
from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_months(start: date, months: int) -> date:
    """
    Add calendar months to a date, clamping the day to the target month.

    Args:
        start: Base date.
        months: Number of months to add (may be negative).

    Returns:
        date: e.g. 2024-08-31 + 6 months -> 2025-02-28
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def full_years_between(start: date, end: date) -> int:
    """Completed calendar years from start to end, 0 when end precedes start."""
    if end <= start:
        return 0
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(0, years)


def anniversary_in_year(anchor: date, year: int) -> date:
    # Feb 29 anchors fall on Feb 28 in non-leap years
    day = min(anchor.day, calendar.monthrange(year, anchor.month)[1])
    return date(year, anchor.month, day)


def next_anniversary(anchor: Optional[date], today: date) -> Optional[date]:
    """
    Next occurrence of the anchor's month/day on or after today.

    Returns None when there is no anchor date.
    """
    if anchor is None:
        return None
    candidate = anniversary_in_year(anchor, today.year)
    if candidate < today:
        candidate = anniversary_in_year(anchor, today.year + 1)
    return candidate


def days_between(start: Optional[datetime], end: datetime) -> Optional[int]:
    """Whole days elapsed from start to end, or None when start is unknown."""
    if start is None:
        return None
    return max(0, (end - start).days)

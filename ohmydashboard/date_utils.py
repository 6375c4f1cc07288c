"""Shared time-window helpers for dashboard aggregation."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Literal

DateRange = Literal["today", "week", "month", "all"]

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

_RANGE_SPANS_MS = {
    "today": DAY_MS,
    "week": 7 * DAY_MS,
    "month": 30 * DAY_MS,
}


def range_cutoff(date_range: str, now: int) -> int:
    """Earliest creation time (epoch ms) included by ``date_range``."""
    token = (date_range or "all").strip().lower()
    if token == "all":
        return 0
    span = _RANGE_SPANS_MS.get(token)
    if span is None:
        raise ValueError(f"Unknown date range: {date_range!r}")
    return now - span


def local_datetime(ts_ms: int) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000)


def local_day_bounds(day: date) -> tuple[int, int]:
    """Return ``[start, end)`` of a local calendar day in epoch ms.

    Computed from local midnights so DST days are 23 or 25 hours long.
    """
    start = datetime(day.year, day.month, day.day)
    end = start + timedelta(days=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def trailing_days(now: int, count: int) -> list[date]:
    """``count`` local calendar days, oldest first, ending on today."""
    today = local_datetime(now).date()
    return [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]


def short_label(day: date) -> str:
    """``Oct 19`` style label (no zero padding)."""
    return f"{day.strftime('%b')} {day.day}"


def sunday_based_weekday(value: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7

"""
scheduler/timemodel.py — Fixed-offset local calendar fields

Converts between absolute UTC time points and broken-down local calendar
fields using a fixed UTC offset in minutes. There is no DST handling: the
offset is applied verbatim in both directions.

Fields may be pushed out of range by the cron calculator (second 60,
day 32, month 13, ...). normalize() carries the overflow into the larger
fields the same way C mktime() does, so the calculator can "just add one"
and let the calendar sort out month lengths and year boundaries.

Weekday numbering is 0-6 with 0 = Sunday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class LocalTime:
    """Broken-down local calendar time. Always normalized when built by this module."""

    year: int
    month: int      # 1-12
    day: int        # 1-31
    hour: int       # 0-23
    minute: int     # 0-59
    second: int     # 0-59
    weekday: int    # 0-6, 0 = Sunday


def as_utc(when: datetime) -> datetime:
    """Return an aware UTC datetime. Naive inputs are taken to already be UTC."""
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _from_naive(naive: datetime) -> LocalTime:
    return LocalTime(
        year=naive.year,
        month=naive.month,
        day=naive.day,
        hour=naive.hour,
        minute=naive.minute,
        second=naive.second,
        weekday=(naive.weekday() + 1) % 7,
    )


def normalize(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    second: int,
) -> LocalTime:
    """
    Build a LocalTime from possibly out-of-range fields, carrying overflow.

    Raises OverflowError / ValueError when the result leaves the range
    datetime can represent; the calculator treats that as non-convergence.
    """
    carry, month_index = divmod(month - 1, 12)
    base = datetime(year + carry, month_index + 1, 1)
    naive = base + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)
    return _from_naive(naive)


def to_local(when: datetime, tz_offset_minutes: int = 0) -> LocalTime:
    """Shift `when` by the offset and split it into calendar fields (sub-second dropped)."""
    shifted = as_utc(when) + timedelta(minutes=tz_offset_minutes)
    return _from_naive(shifted.replace(tzinfo=None, microsecond=0))


def from_local(local: LocalTime, tz_offset_minutes: int = 0) -> datetime:
    """Reverse to_local(): local calendar fields back to an aware UTC datetime."""
    naive = datetime(local.year, local.month, local.day, local.hour, local.minute, local.second)
    return naive.replace(tzinfo=timezone.utc) - timedelta(minutes=tz_offset_minutes)


def to_epoch_seconds(when: datetime | None) -> int:
    """Whole epoch seconds, or 0 for None."""
    if when is None:
        return 0
    return int(as_utc(when).timestamp())

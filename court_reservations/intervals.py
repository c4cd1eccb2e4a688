from __future__ import annotations

from datetime import date, datetime, time

from .errors import InvalidIntervalError

TimeValue = time | datetime


def overlaps(a_start: TimeValue, a_end: TimeValue, b_start: TimeValue, b_end: TimeValue) -> bool:
    """Return True when two time intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def duration_minutes(start: TimeValue, end: TimeValue) -> int:
    if end <= start:
        raise InvalidIntervalError(f"Interval end {end} must be later than start {start}.")
    return int((_as_datetime(end) - _as_datetime(start)).total_seconds() // 60)


def contains(outer_start: TimeValue, outer_end: TimeValue, inner_start: TimeValue, inner_end: TimeValue) -> bool:
    """Return True when [inner_start, inner_end) lies entirely inside [outer_start, outer_end)."""
    return outer_start <= inner_start and inner_end <= outer_end


def validate_interval(start: TimeValue, end: TimeValue) -> None:
    if end <= start:
        raise InvalidIntervalError(f"Interval end {end} must be later than start {start}.")


def combine(target_date: date, value: time) -> datetime:
    return datetime.combine(target_date, value)


def _as_datetime(value: TimeValue) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(date.min, value)

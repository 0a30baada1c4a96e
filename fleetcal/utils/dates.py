"""Inclusive day-range helpers."""

from datetime import date, datetime, timedelta
from typing import Iterator

from ..errors import InvalidRangeError

ONE_DAY = timedelta(days=1)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day from start to end, both inclusive"""
    current = start
    while current <= end:
        yield current
        current += ONE_DAY


def day_count(start: date, end: date) -> int:
    return (end - start).days + 1


def validate_range(start: date, end: date, max_days: int = None) -> None:
    """
    Reject malformed ranges.
    
    Raises:
        InvalidRangeError: If end is before start or the range is too long
    """
    if start is None or end is None:
        raise InvalidRangeError("Both start and end dates are required")
    if isinstance(start, datetime) or isinstance(end, datetime):
        raise InvalidRangeError("Dates must not carry a time of day")
    if end < start:
        raise InvalidRangeError(f"End date {end} is before start date {start}")
    if max_days is not None and day_count(start, end) > max_days:
        raise InvalidRangeError(f"Range is longer than {max_days} days")

"""Date manipulation utilities"""

from datetime import date, datetime


def as_date(value: date) -> date:
    """Drop the time part of a datetime so it can be compared with plain dates"""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date, end: date) -> int:
    """Whole days from start to end, never negative (future dates count as 0)"""
    return max((as_date(end) - as_date(start)).days, 0)

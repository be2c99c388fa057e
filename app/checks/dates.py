"""
SiteCheck Checks - Calendar Day Helpers

Everything the scheduler compares is a calendar day. Stored values arrive as
date objects, naive or aware datetimes, or ISO strings; these helpers bring
them down to a plain ``date`` before any arithmetic happens.
"""
import datetime
from typing import Optional, Union

DayLike = Union[datetime.date, datetime.datetime, str]


def _parse_iso(value: str) -> Union[datetime.date, datetime.datetime]:
    text = value.strip()
    if len(text) == 10:
        return datetime.date.fromisoformat(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(text)


def to_day(value: DayLike, tz: Optional[datetime.tzinfo] = None) -> datetime.date:
    """
    Normalize a temporal value to its calendar day.

    Aware datetimes are converted into ``tz`` first when one is given, so a
    UTC timestamp from the store lands on the site's local day.
    """
    if isinstance(value, str):
        value = _parse_iso(value)
    if isinstance(value, datetime.datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    raise TypeError(f"Cannot read a calendar day from {type(value).__name__}")


def to_instant(value: DayLike) -> datetime.datetime:
    """A datetime for ``value``; bare days become their midnight."""
    if isinstance(value, str):
        value = _parse_iso(value)
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return start_of_day(value)
    raise TypeError(f"Cannot read an instant from {type(value).__name__}")


def start_of_day(day: datetime.date, tzinfo: Optional[datetime.tzinfo] = None) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=tzinfo)


def format_day(day: Optional[datetime.date]) -> Optional[str]:
    return day.isoformat() if day else None

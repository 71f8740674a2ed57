"""Utilities for working with UTC timestamps."""
from datetime import date, datetime, timezone
from typing import Callable, Optional, Union

# Injectable current-time source
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time as a naive ``datetime`` (database convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalise ``value`` to a naive UTC ``datetime``."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime into a naive UTC ``datetime``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse an ISO-8601 date (a datetime is truncated to its date)."""
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def days_between(start: datetime, end: datetime) -> float:
    """Elapsed days from ``start`` to ``end`` as a float."""
    return (end - start).total_seconds() / 86400

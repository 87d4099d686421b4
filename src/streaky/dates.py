"""Local-calendar date helpers.

Completion is a local-day concept: a log written at 11pm counts for the
user's today, not UTC's. Every helper here works on ``date`` values so that
daylight-saving transitions never shift a day boundary.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Union

from .errors import InvalidDate

DateLike = Union[date, datetime, str]

KEY_FORMAT = "%Y-%m-%d"


def today() -> date:
    """Return the caller's local calendar date."""

    return date.today()


def yesterday() -> date:
    """Return the local calendar date before today."""

    return today() - timedelta(days=1)


def parse_key(value: DateLike) -> date:
    """Return the calendar date for a date, datetime or ``YYYY-MM-DD`` string.

    ISO datetime strings are accepted; only their date part is used.
    """

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDate(f"Unsupported date value: {value!r}")

    text = value.strip()
    try:
        if len(text) == 10:
            return datetime.strptime(text, KEY_FORMAT).date()
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidDate(f"Invalid date: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def local_date(value: datetime) -> date:
    """Return the local calendar date of a stored timestamp.

    Naive timestamps are UTC, which is how SQLite hands back aware values.
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone().date()


def to_key(value: DateLike) -> str:
    """Return the canonical ``YYYY-MM-DD`` key for ``value``."""

    return parse_key(value).strftime(KEY_FORMAT)


def today_key() -> str:
    return to_key(today())


def add_days(value: DateLike, days: int) -> date:
    """Shift ``value`` by a whole number of calendar days."""

    return parse_key(value) + timedelta(days=days)


def days_between(start: DateLike, end: DateLike) -> int:
    """Return the number of calendar days from ``start`` to ``end``.

    Positive when ``end`` is later than ``start``.
    """

    return (parse_key(end) - parse_key(start)).days


__all__ = [
    "DateLike",
    "KEY_FORMAT",
    "add_days",
    "days_between",
    "local_date",
    "parse_key",
    "to_key",
    "today",
    "today_key",
    "yesterday",
]

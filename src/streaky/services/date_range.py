"""Date windows for range-scoped log views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Union

from .. import dates
from ..errors import InvalidDate, InvalidRange


@dataclass(frozen=True)
class DateWindow:
    """Inclusive window of canonical ``YYYY-MM-DD`` keys."""

    start: str
    end: str

    def __iter__(self):
        yield self.start
        yield self.end


def _canonical(value: Union[date, str], label: str) -> str:
    if isinstance(value, date):
        return dates.to_key(value)
    if not isinstance(value, str):
        raise InvalidRange(f"{label} must be a date or YYYY-MM-DD string, got {value!r}")
    try:
        key = dates.to_key(value)
    except InvalidDate as exc:
        raise InvalidRange(f"{label} is not a real calendar date: {value!r}") from exc
    # Keys compare lexicographically, so only the fixed-width form is allowed.
    if key != value:
        raise InvalidRange(f"{label} must use YYYY-MM-DD, got {value!r}")
    return key


def normalize(start: Union[date, str], end: Union[date, str]) -> DateWindow:
    """Validate both bounds and return a window with ``start <= end``."""

    start_key = _canonical(start, "start")
    end_key = _canonical(end, "end")
    if start_key > end_key:
        raise InvalidRange(f"start {start_key} is after end {end_key}")
    return DateWindow(start_key, end_key)


def contains(window: DateWindow, date_key: str) -> bool:
    """Return True when ``date_key`` lies inside ``window``, bounds included."""

    return window.start <= date_key <= window.end


__all__ = ["DateWindow", "contains", "normalize"]

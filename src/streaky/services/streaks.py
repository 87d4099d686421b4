"""Streak and completion-rate calculations over habit logs.

Everything here is a pure function of its inputs. ``today`` defaults to the
local calendar date and can be pinned by callers (and tests).
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Iterable, Optional, Protocol

from .. import dates


class LogLike(Protocol):
    """Anything shaped like a ``HabitLog`` row."""

    date: date | str
    completed: bool


def _date_index(logs: Iterable[LogLike]) -> dict[str, bool]:
    """Map date keys to completion; the last log for a key wins."""

    index: dict[str, bool] = {}
    for log in logs:
        index[dates.to_key(log.date)] = bool(log.completed)
    return index


def current_streak(logs: Iterable[LogLike], *, today: Optional[date] = None) -> int:
    """Return the run of completed days ending today, or yesterday.

    A habit not yet done today is not broken until the day ends, so counting
    starts at yesterday unless today is already completed.
    """

    index = _date_index(logs)
    if not index:
        return 0

    cursor = today or dates.today()
    if index.get(dates.to_key(cursor)) is not True:
        cursor -= timedelta(days=1)

    streak = 0
    while index.get(dates.to_key(cursor)) is True:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(logs: Iterable[LogLike]) -> int:
    """Return the longest run of consecutive completed days ever logged."""

    index = _date_index(logs)
    longest = 0
    run = 0
    previous: Optional[date] = None
    for key in sorted(index):
        day = dates.parse_key(key)
        if not index[key]:
            longest = max(longest, run)
            run = 0
            previous = None
            continue
        if previous is not None and dates.days_between(previous, day) == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
        previous = day
    return max(longest, run)


def compute_streaks(logs: Iterable[LogLike], *, today: Optional[date] = None) -> tuple[int, int]:
    """Return (current_streak, longest_streak) from a collection of logs."""

    logs = list(logs)
    return current_streak(logs, today=today), longest_streak(logs)


def _window_start(window_days: int, today: date, since: Optional[date]) -> date:
    start = today - timedelta(days=window_days - 1)
    if since is not None:
        start = max(start, dates.parse_key(since))
    return start


def completed_days_in_range(
    logs: Iterable[LogLike],
    window_days: int = 30,
    *,
    today: Optional[date] = None,
) -> int:
    """Count distinct completed days within the last ``window_days`` days."""

    if window_days <= 0:
        return 0
    today = today or dates.today()
    start_key = dates.to_key(_window_start(window_days, today, None))
    end_key = dates.to_key(today)
    return sum(
        1
        for key, completed in _date_index(logs).items()
        if completed and start_key <= key <= end_key
    )


def completion_rate(
    logs: Iterable[LogLike],
    window_days: int = 30,
    *,
    today: Optional[date] = None,
    since: Optional[date] = None,
) -> int:
    """Return the completed share of the last ``window_days`` days as 0-100.

    The denominator is the number of days elapsed in the window, capped at
    ``window_days`` and at the days since ``since`` (the habit's creation
    date) when given.
    """

    index = _date_index(logs)
    if not index or window_days <= 0:
        return 0

    today = today or dates.today()
    start = _window_start(window_days, today, since)
    total_days = min(window_days, dates.days_between(start, today) + 1)
    if total_days <= 0:
        return 0

    start_key, end_key = dates.to_key(start), dates.to_key(today)
    completed = sum(
        1 for key, done in index.items() if done and start_key <= key <= end_key
    )
    # Half-up rounding, matching how percentages are shown elsewhere.
    return int(math.floor(completed * 100 / total_days + 0.5))


def get_today_log(logs: Iterable[LogLike], *, today: Optional[date] = None):
    """Return the last log recorded for today, or ``None``."""

    key = dates.to_key(today or dates.today())
    found = None
    for log in logs:
        if dates.to_key(log.date) == key:
            found = log
    return found


def is_completed_today(logs: Iterable[LogLike], *, today: Optional[date] = None) -> bool:
    log = get_today_log(logs, today=today)
    return bool(log is not None and log.completed)


__all__ = [
    "LogLike",
    "completed_days_in_range",
    "completion_rate",
    "compute_streaks",
    "current_streak",
    "get_today_log",
    "is_completed_today",
    "longest_streak",
]

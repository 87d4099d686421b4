"""Cross-habit statistics for the dashboard."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from .. import dates
from ..models.habit import Habit
from .streaks import LogLike, completion_rate, longest_streak


def group_logs_by_habit(logs: Iterable) -> dict[str, list]:
    """Bucket logs by ``habit_id`` in a single pass."""

    grouped: dict[str, list] = defaultdict(list)
    for log in logs:
        grouped[log.habit_id].append(log)
    return dict(grouped)


def habit_start(habit: Habit) -> Optional[date]:
    """Local date the habit was created, the earliest day it can be completed."""

    if habit.created_at is None:
        return None
    return dates.local_date(habit.created_at)


def best_streak(habits: Sequence[Habit], logs_by_habit: Mapping[str, Sequence[LogLike]]) -> int:
    """Return the longest streak achieved by any habit."""

    best = 0
    for habit in habits:
        best = max(best, longest_streak(logs_by_habit.get(habit.id, ())))
    return best


def average_completion_rate(
    habits: Sequence[Habit],
    logs_by_habit: Mapping[str, Sequence[LogLike]],
    window_days: int = 30,
    *,
    today: Optional[date] = None,
) -> int:
    """Return the rounded mean completion rate across ``habits``."""

    if not habits:
        return 0
    total = sum(
        completion_rate(
            logs_by_habit.get(habit.id, ()),
            window_days,
            today=today,
            since=habit_start(habit),
        )
        for habit in habits
    )
    return int(math.floor(total / len(habits) + 0.5))


def total_days_tracked(logs: Iterable[LogLike]) -> int:
    """Number of distinct calendar days with at least one log."""

    return len({dates.to_key(log.date) for log in logs})


__all__ = [
    "average_completion_rate",
    "best_streak",
    "group_logs_by_habit",
    "habit_start",
    "total_days_tracked",
]

"""View state held by the log cache, and list helpers that keep it coherent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .. import dates
from ..domain.selectors import ViewSelector
from ..models.habit import HabitLog


@dataclass(frozen=True)
class ViewSnapshot:
    """What a reader sees: the materialized logs and whether they need a fetch."""

    data: tuple[HabitLog, ...]
    is_stale: bool
    error: Optional[BaseException] = None

    def __iter__(self):
        yield self.data
        yield self.is_stale


Listener = Callable[[ViewSnapshot], None]


@dataclass(eq=False)
class View:
    selector: ViewSelector
    logs: list[HabitLog] = field(default_factory=list)
    fetched_at: Optional[float] = None
    last_access: float = 0.0
    invalidated: bool = False
    error: Optional[BaseException] = None
    # Bumped on every local mutation; a fetch started under an older
    # generation is discarded.
    generation: int = 0
    pending_writes: int = 0
    listeners: list[Listener] = field(default_factory=list)


def log_key(log: HabitLog) -> tuple[str, str]:
    return log.habit_id, dates.to_key(log.date)


def dedupe(logs: Iterable[HabitLog]) -> list[HabitLog]:
    """Collapse logs sharing ``(habit_id, date)``; the last one wins its slot."""

    result: list[HabitLog] = []
    positions: dict[tuple[str, str], int] = {}
    for log in logs:
        key = log_key(log)
        if key in positions:
            result[positions[key]] = log
        else:
            positions[key] = len(result)
            result.append(log)
    return result


def place(logs: list[HabitLog], record: HabitLog) -> list[HabitLog]:
    """Return ``logs`` with ``record`` replacing its day, or prepended if new.

    Any further entries for the same day are dropped, so a view never holds
    two live entries for one date key.
    """

    key = log_key(record)
    result: list[HabitLog] = []
    replaced = False
    for log in logs:
        if log_key(log) != key:
            result.append(log)
        elif not replaced:
            result.append(record)
            replaced = True
    if not replaced:
        result.insert(0, record)
    return result


def find(logs: Iterable[HabitLog], habit_id: str, date_key: str) -> Optional[HabitLog]:
    found = None
    for log in logs:
        if log.habit_id == habit_id and dates.to_key(log.date) == date_key:
            found = log
    return found

"""Habit and habit log repository protocols."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from ...models.habit import Habit, HabitLog
from ..selectors import ViewSelector


class HabitLogStore(Protocol):
    """Durable store of completion logs."""

    def fetch_logs(self, selector: ViewSelector) -> list[HabitLog]:
        """Return authoritative logs for a view, newest date first."""
        ...

    def habit_owner(self, habit_id: str) -> Optional[int]:
        """Return the id of the user owning ``habit_id``, or None if it does not exist."""
        ...

    def upsert_log(
        self, habit_id: str, log_date: date, completed: bool, *, user_id: Optional[int] = None
    ) -> HabitLog:
        """Atomically insert or update the log for ``(habit_id, log_date)``.

        With ``user_id``, raise ``Unauthorized`` unless that user owns the habit.
        """
        ...


class HabitStore(Protocol):
    """Durable store of habits."""

    def fetch_habits(self, user_id: int) -> list[Habit]:
        """List a user's habits, newest first."""
        ...

    def get_habit(self, habit_id: str, *, user_id: int) -> Optional[Habit]:
        """Retrieve one habit owned by ``user_id``."""
        ...

    def create_habit(self, habit: Habit, *, user_id: int) -> Habit:
        """Persist a new habit."""
        ...

    def update_habit(self, habit: Habit, *, user_id: int) -> Habit:
        """Persist changes to an existing habit."""
        ...

    def delete_habit(self, habit_id: str, *, user_id: int) -> None:
        """Delete a habit together with its logs."""
        ...

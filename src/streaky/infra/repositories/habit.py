"""SQLModel implementation of the habit store."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...logging_config import get_logger
from ...models.habit import Habit

logger = get_logger(__name__)


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _validate(habit: Habit) -> None:
        if not habit.title or not habit.title.strip():
            raise ValueError("Habit title cannot be empty")
        habit.title = habit.title.strip()

    def fetch_habits(self, user_id: int) -> list[Habit]:
        """List a user's habits, newest first."""
        with self.session_factory() as session:
            statement = (
                select(Habit)
                .where(Habit.user_id == user_id)
                .order_by(Habit.created_at.desc())  # type: ignore[attr-defined]
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def get_habit(self, habit_id: str, *, user_id: int) -> Optional[Habit]:
        with self.session_factory() as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def create_habit(self, habit: Habit, *, user_id: int) -> Habit:
        """Create a new habit owned by ``user_id``."""
        self._validate(habit)
        with self.session_factory() as session:
            habit.user_id = user_id
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
        logger.info("Habit created", extra={"habit_id": habit.id, "user_id": user_id})
        return habit

    def update_habit(self, habit: Habit, *, user_id: int) -> Habit:
        """Update title, icon, color or frequency of an existing habit."""
        self._validate(habit)
        with self.session_factory() as session:
            existing = session.exec(
                select(Habit).where(Habit.id == habit.id, Habit.user_id == user_id)
            ).first()
            if existing is None:
                raise ValueError(f"Habit {habit.id} not found")
            existing.title = habit.title
            existing.icon = habit.icon
            existing.color = habit.color
            existing.frequency = habit.frequency
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete_habit(self, habit_id: str, *, user_id: int) -> None:
        """Delete a habit; its logs go with it."""
        with self.session_factory() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if habit:
                session.delete(habit)
                session.commit()
                logger.info("Habit deleted", extra={"habit_id": habit_id, "user_id": user_id})

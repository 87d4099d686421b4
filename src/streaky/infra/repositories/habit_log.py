"""SQLModel implementation of the habit log store."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ... import dates
from ...domain.selectors import ViewSelector
from ...errors import DuplicateRecord, Unauthorized
from ...logging_config import get_logger
from ...models.habit import Habit, HabitLog, new_id

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SQLModelHabitLogRepository:
    """SQLModel-based completion log repository."""

    def __init__(self, session_factory: Callable[[], Session], *, today: Optional[Callable[[], date]] = None):
        self.session_factory = session_factory
        self._today = today or dates.today

    def fetch_logs(self, selector: ViewSelector) -> list[HabitLog]:
        """Return the logs for a view, newest date first."""
        statement = select(HabitLog)
        if selector.habit_id is not None:
            statement = statement.where(HabitLog.habit_id == selector.habit_id)
        else:
            statement = statement.join(Habit).where(Habit.user_id == selector.user_id)

        if selector.today_only:
            statement = statement.where(HabitLog.date == self._today())
        elif selector.window is not None:
            statement = statement.where(
                HabitLog.date >= dates.parse_key(selector.window.start),
                HabitLog.date <= dates.parse_key(selector.window.end),
            )

        statement = statement.order_by(HabitLog.date.desc())  # type: ignore[attr-defined]
        with self.session_factory() as session:
            rows = list(session.exec(statement).all())
            session.expunge_all()
        logger.debug("Fetched logs", extra={"selector": repr(selector), "count": len(rows)})
        return rows

    def get_log(self, habit_id: str, log_date: date) -> Optional[HabitLog]:
        with self.session_factory() as session:
            obj = session.exec(
                select(HabitLog)
                .where(HabitLog.habit_id == habit_id)
                .where(HabitLog.date == log_date)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def habit_owner(self, habit_id: str) -> Optional[int]:
        with self.session_factory() as session:
            return session.exec(select(Habit.user_id).where(Habit.id == habit_id)).first()

    def upsert_log(
        self, habit_id: str, log_date: date, completed: bool, *, user_id: Optional[int] = None
    ) -> HabitLog:
        """Insert or update the log for ``(habit_id, log_date)`` in one statement.

        Relies on the ``unique_habit_date`` constraint, so two concurrent
        toggles for the same day can never produce two rows. When ``user_id``
        is given the habit must belong to that user.
        """
        log_date = dates.parse_key(log_date)
        with self.session_factory() as session:
            if user_id is not None:
                owned = session.exec(
                    select(Habit.id).where(Habit.id == habit_id, Habit.user_id == user_id)
                ).first()
                if owned is None:
                    logger.warning(
                        "Rejected log write for habit not owned by user",
                        extra={"habit_id": habit_id, "user_id": user_id},
                    )
                    raise Unauthorized(f"Habit {habit_id} does not belong to user {user_id}")
            dialect = session.get_bind().dialect.name
            insert = _UPSERT_DIALECTS.get(dialect)
            if insert is None:
                raise RuntimeError(f"Atomic upsert is not supported on {dialect!r}")
            statement = insert(HabitLog.__table__).values(
                id=new_id(),
                habit_id=habit_id,
                date=log_date,
                completed=completed,
            )
            statement = statement.on_conflict_do_update(
                index_elements=["habit_id", "date"],
                set_={"completed": statement.excluded.completed},
            )
            session.exec(statement)  # type: ignore[call-overload]
            session.commit()
            row = session.exec(
                select(HabitLog)
                .where(HabitLog.habit_id == habit_id)
                .where(HabitLog.date == log_date)
            ).one()
            session.expunge(row)
        logger.info(
            "Habit log upserted",
            extra={"habit_id": habit_id, "date": dates.to_key(log_date), "completed": completed},
        )
        return row

    def add_log(self, log: HabitLog) -> HabitLog:
        """Insert a log row, refusing a second row for the same day."""
        with self.session_factory() as session:
            session.add(log)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if self.get_log(log.habit_id, log.date) is not None:
                    raise DuplicateRecord(
                        f"Habit {log.habit_id} already has a log for {dates.to_key(log.date)}"
                    ) from exc
                raise
            session.refresh(log)
            session.expunge(log)
            return log

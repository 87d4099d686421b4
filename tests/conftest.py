"""Pytest configuration and shared fixtures for Streaky tests.

Provides an isolated SQLite database per test, user/habit/log factories, and
an in-memory fake of the log store for exercising the cache without touching
a database.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from streaky import dates
from streaky.domain.selectors import ViewSelector
from streaky.errors import Unauthorized
from streaky.logging_config import ROOT_LOGGER_NAME
from streaky.models import Habit, HabitLog, User

# Fixed "today" for deterministic streak and view tests (a Friday).
TODAY = date(2024, 3, 15)
# Creation time for habits that predate every log in the fixtures.
LONG_AGO = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_streaky_logger():
    """Detach handlers added by setup_logging so tests do not share log files."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine with all tables created
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """A session for arranging test data directly."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching what repositories expect: Callable[[], Session]."""

    @contextmanager
    def factory():
        session = Session(db_engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user(db_session) -> User:
    """Create the default owner for habits."""
    u = User(username="tester", password_hash="dummy-hash")
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture
def habit_factory(db_session, user):
    """Factory for creating persisted habits."""

    def _create_habit(
        title: str = "Test Habit",
        color: str | None = "emerald",
        icon: str | None = None,
        owner: User | None = None,
    ) -> Habit:
        owner = owner or user
        habit = Habit(
            user_id=owner.id,
            title=title,
            color=color,
            icon=icon,
            frequency={"type": "daily"},
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _create_habit


@pytest.fixture
def log_factory(db_session):
    """Factory for creating persisted habit logs."""

    def _create_log(habit: Habit, day: date, completed: bool = True) -> HabitLog:
        log = HabitLog(habit_id=habit.id, date=day, completed=completed)
        db_session.add(log)
        db_session.commit()
        db_session.refresh(log)
        return log

    return _create_log


# =============================================================================
# Cache helpers
# =============================================================================


def make_log(habit_id: str, day: date | str, completed: bool = True, log_id: str | None = None) -> HabitLog:
    """Build an unsaved log row; ids default to a readable ``habit:date`` form."""
    day = dates.parse_key(day)
    return HabitLog(
        id=log_id or f"{habit_id}:{dates.to_key(day)}",
        habit_id=habit_id,
        date=day,
        completed=completed,
    )


def run_of_logs(habit_id: str, end: date, length: int, completed: bool = True) -> list[HabitLog]:
    """``length`` consecutive daily logs ending on ``end``."""
    return [make_log(habit_id, dates.add_days(end, -offset), completed) for offset in range(length)]


class FakeLogStore:
    """In-memory stand-in for the durable log store.

    ``fail_with`` makes the next ``upsert_log`` raise. ``on_upsert`` runs
    inside the store call, while the cache is suspended on the write.
    """

    def __init__(self, habit_owners: dict[str, int], *, today: date = TODAY):
        self.habit_owners = habit_owners
        self.today = today
        self.rows: dict[tuple[str, str], HabitLog] = {}
        self.fail_with: Optional[BaseException] = None
        self.on_upsert: Optional[Callable[[str, date, bool], None]] = None
        self.fetch_calls: list[ViewSelector] = []
        self.upsert_calls: list[tuple[str, date, bool]] = []
        self._counter = 0
        self._lock = threading.Lock()

    def seed(self, *logs: HabitLog) -> None:
        for log in logs:
            self.rows[(log.habit_id, dates.to_key(log.date))] = log

    def fetch_logs(self, selector: ViewSelector) -> list[HabitLog]:
        self.fetch_calls.append(selector)
        today_key = dates.to_key(self.today)
        result = []
        for (habit_id, key), log in self.rows.items():
            owner = self.habit_owners.get(habit_id)
            if selector.matches(habit_id, owner, key, today_key):
                result.append(log)
        return sorted(result, key=lambda log: log.date, reverse=True)

    def habit_owner(self, habit_id: str) -> Optional[int]:
        return self.habit_owners.get(habit_id)

    def upsert_log(
        self, habit_id: str, log_date: date, completed: bool, *, user_id: Optional[int] = None
    ) -> HabitLog:
        self.upsert_calls.append((habit_id, log_date, completed))
        if user_id is not None and self.habit_owners.get(habit_id) != user_id:
            raise Unauthorized(f"Habit {habit_id} does not belong to user {user_id}")
        if self.on_upsert is not None:
            self.on_upsert(habit_id, log_date, completed)
        if self.fail_with is not None:
            exc, self.fail_with = self.fail_with, None
            raise exc
        key = (habit_id, dates.to_key(log_date))
        with self._lock:
            existing = self.rows.get(key)
            if existing is not None:
                row = HabitLog(id=existing.id, habit_id=habit_id, date=log_date, completed=completed)
            else:
                self._counter += 1
                row = HabitLog(id=f"db-{self._counter}", habit_id=habit_id, date=log_date, completed=completed)
            self.rows[key] = row
        return row


@pytest.fixture
def fake_store() -> FakeLogStore:
    return FakeLogStore({"run": 1, "read": 1, "other": 2})

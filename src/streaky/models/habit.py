"""Habit and completion log tables."""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .user import User

TEMP_ID_PREFIX = "temp-"


def new_id() -> str:
    return uuid4().hex


def placeholder_log_id() -> str:
    """Return an identifier for a log that has not reached the store yet."""

    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


class Habit(SQLModel, table=True):
    """A user-defined habit tracked once per calendar day."""

    __tablename__: ClassVar[str] = "habits"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    title: str = Field(nullable=False, max_length=120)
    icon: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = Field(default=None, max_length=32)
    frequency: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    logs: list["HabitLog"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "HabitLog", back_populates="habit", cascade="all, delete-orphan"
        ),
    )

    user: "User" = Relationship(sa_relationship=relationship("User", back_populates="habits"))


class HabitLog(SQLModel, table=True):
    """Whether a habit was completed on one calendar day."""

    __tablename__: ClassVar[str] = "habit_logs"
    __table_args__ = (UniqueConstraint("habit_id", "date", name="unique_habit_date"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    habit_id: str = Field(foreign_key="habits.id", nullable=False, index=True)
    date: dt.date = Field(nullable=False, index=True)
    completed: bool = Field(default=False, nullable=False)

    habit: "Habit" = Relationship(
        back_populates="logs",
        sa_relationship=relationship("Habit", back_populates="logs"),
    )

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)

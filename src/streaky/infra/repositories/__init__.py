"""Concrete repository implementations using SQLModel."""

from .habit import SQLModelHabitRepository
from .habit_log import SQLModelHabitLogRepository

__all__ = [
    "SQLModelHabitLogRepository",
    "SQLModelHabitRepository",
]

"""SQLModel table exports."""

from .habit import Habit, HabitLog, placeholder_log_id
from .user import User

__all__ = [
    "Habit",
    "HabitLog",
    "User",
    "placeholder_log_id",
]

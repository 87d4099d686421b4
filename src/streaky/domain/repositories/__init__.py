"""Repository protocols consumed by the cache and services."""

from .habit import HabitLogStore, HabitStore

__all__ = ["HabitLogStore", "HabitStore"]

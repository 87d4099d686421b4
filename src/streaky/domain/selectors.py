"""Selectors identifying a cached view of habit logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from ..services.date_range import DateWindow, contains, normalize


@dataclass(frozen=True)
class ViewSelector:
    """Parameters of a log view: one habit or one user, optionally narrowed.

    Exactly one of ``habit_id`` / ``user_id`` is set. A selector is either
    windowed or today-only, never both.
    """

    habit_id: Optional[str] = None
    user_id: Optional[int] = None
    window: Optional[DateWindow] = None
    today_only: bool = False

    def __post_init__(self) -> None:
        if (self.habit_id is None) == (self.user_id is None):
            raise ValueError("A view selector needs exactly one of habit_id or user_id")
        if self.window is not None and self.today_only:
            raise ValueError("A view selector cannot be both windowed and today-only")

    @classmethod
    def for_habit(cls, habit_id: str) -> "ViewSelector":
        return cls(habit_id=habit_id)

    @classmethod
    def for_user(cls, user_id: int) -> "ViewSelector":
        return cls(user_id=user_id)

    @classmethod
    def habit_today(cls, habit_id: str) -> "ViewSelector":
        return cls(habit_id=habit_id, today_only=True)

    @classmethod
    def user_today(cls, user_id: int) -> "ViewSelector":
        return cls(user_id=user_id, today_only=True)

    @classmethod
    def habit_range(
        cls, habit_id: str, start: Union[date, str], end: Union[date, str]
    ) -> "ViewSelector":
        return cls(habit_id=habit_id, window=normalize(start, end))

    @classmethod
    def user_range(
        cls, user_id: int, start: Union[date, str], end: Union[date, str]
    ) -> "ViewSelector":
        return cls(user_id=user_id, window=normalize(start, end))

    @property
    def is_all_time(self) -> bool:
        return self.window is None and not self.today_only

    def matches(self, habit_id: str, user_id: Optional[int], date_key: str, today_key: str) -> bool:
        """Return True when a log for ``(habit_id, date_key)`` belongs in this view.

        ``user_id`` is the owner of ``habit_id``.
        """

        if self.habit_id is not None:
            if self.habit_id != habit_id:
                return False
        elif user_id is None or self.user_id != user_id:
            return False

        if self.window is not None and not contains(self.window, date_key):
            return False
        if self.today_only and date_key != today_key:
            return False
        return True


__all__ = ["ViewSelector"]

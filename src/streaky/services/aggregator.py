"""Join habits with cache-derived streak and completion data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from .. import dates
from ..cache import LogCache, Subscription, ViewSelector, ViewSnapshot
from ..domain.repositories import HabitStore
from ..errors import Unauthorized
from ..logging_config import get_logger
from ..models.habit import Habit, HabitLog
from . import stats, streaks

logger = get_logger(__name__)


@dataclass(frozen=True)
class HabitWithData:
    """A habit plus the numbers shown on its card."""

    habit: Habit
    streak: int
    longest_streak: int
    completed_today: bool
    completion_rate: int


@dataclass(frozen=True)
class DashboardStats:
    total_habits: int
    completed_today: int
    best_streak: int
    average_completion_rate: int
    total_days_tracked: int


class HabitAggregator:
    """Read-only consumer of the log cache; memoizes per-habit derived data.

    The memo is dropped whenever the user's log view changes (optimistic
    apply, rollback, refresh) and after every confirmed toggle.
    """

    def __init__(
        self,
        habit_store: HabitStore,
        cache: LogCache,
        *,
        current_user: Callable[[], Optional[int]],
        window_days: int = 30,
        today: Callable[[], date] = dates.today,
    ):
        self.habit_store = habit_store
        self.cache = cache
        self._current_user = current_user
        self.window_days = window_days
        self._today = today
        self._habits: dict[int, list[Habit]] = {}
        # Keyed by (user_id, today) so day-relative fields roll over at midnight.
        self._memo: Optional[tuple[tuple[int, date], list[HabitWithData]]] = None
        self._subscription: Optional[Subscription] = None
        self._remove_hook = cache.add_invalidation_hook(self._on_confirmed_write)

    def _require_user(self) -> int:
        user_id = self._current_user()
        if user_id is None:
            raise Unauthorized("Sign in to view habits")
        return user_id

    def _on_confirmed_write(self, habit_id: str, date_key: str) -> None:
        self._memo = None

    def _on_view_change(self, _snapshot: ViewSnapshot) -> None:
        self._memo = None

    def _user_view(self, user_id: int) -> ViewSnapshot:
        selector = ViewSelector.for_user(user_id)
        if self._subscription is None or self._subscription.selector != selector:
            if self._subscription is not None:
                self._subscription.close()
            self._subscription = self.cache.subscribe(selector, self._on_view_change)
        return self.cache.get_view(selector)

    # Habit pass-throughs ------------------------------------------------

    def habits(self, *, reload: bool = False) -> list[Habit]:
        user_id = self._require_user()
        if reload or user_id not in self._habits:
            self._habits[user_id] = self.habit_store.fetch_habits(user_id)
            self._memo = None
        return list(self._habits[user_id])

    def create_habit(self, habit: Habit) -> Habit:
        user_id = self._require_user()
        created = self.habit_store.create_habit(habit, user_id=user_id)
        self._habits.pop(user_id, None)
        self._memo = None
        return created

    def update_habit(self, habit: Habit) -> Habit:
        user_id = self._require_user()
        updated = self.habit_store.update_habit(habit, user_id=user_id)
        self._habits.pop(user_id, None)
        self._memo = None
        return updated

    def delete_habit(self, habit_id: str) -> None:
        user_id = self._require_user()
        self.habit_store.delete_habit(habit_id, user_id=user_id)
        self.cache.forget_habit(habit_id)
        self._habits.pop(user_id, None)
        self._memo = None

    # Derived data -------------------------------------------------------

    def logs_by_habit(self) -> dict[str, list[HabitLog]]:
        user_id = self._require_user()
        return stats.group_logs_by_habit(self._user_view(user_id).data)

    def habits_with_data(self) -> list[HabitWithData]:
        """Return every habit with its current streak and today's status."""
        user_id = self._require_user()
        view = self._user_view(user_id)
        today = self._today()
        memo_key = (user_id, today)
        if self._memo is not None and self._memo[0] == memo_key:
            return list(self._memo[1])

        logs_by_habit = stats.group_logs_by_habit(view.data)

        result = []
        for habit in self.habits():
            habit_logs = logs_by_habit.get(habit.id, [])
            result.append(
                HabitWithData(
                    habit=habit,
                    streak=streaks.current_streak(habit_logs, today=today),
                    longest_streak=streaks.longest_streak(habit_logs),
                    completed_today=streaks.is_completed_today(habit_logs, today=today),
                    completion_rate=streaks.completion_rate(
                        habit_logs,
                        self.window_days,
                        today=today,
                        since=stats.habit_start(habit),
                    ),
                )
            )
        logger.debug("Recomputed habit data", extra={"user_id": user_id, "habits": len(result)})
        self._memo = (memo_key, result)
        return list(result)

    def dashboard_stats(self) -> DashboardStats:
        user_id = self._require_user()
        habits = self.habits()
        all_logs = self._user_view(user_id).data
        logs_by_habit = stats.group_logs_by_habit(all_logs)
        return DashboardStats(
            total_habits=len(habits),
            completed_today=sum(1 for item in self.habits_with_data() if item.completed_today),
            best_streak=stats.best_streak(habits, logs_by_habit),
            average_completion_rate=stats.average_completion_rate(
                habits, logs_by_habit, self.window_days, today=self._today()
            ),
            total_days_tracked=stats.total_days_tracked(all_logs),
        )

    async def refresh(self) -> list[HabitWithData]:
        """Reload habits and the user's logs from the store."""
        user_id = self._require_user()
        self.habits(reload=True)
        self._user_view(user_id)
        await self.cache.refresh(ViewSelector.for_user(user_id))
        self._memo = None
        return self.habits_with_data()

    def reset(self) -> None:
        """Forget cached habits and derived data, e.g. when the user changes."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._habits.clear()
        self._memo = None

    def close(self) -> None:
        self.reset()
        self._remove_hook()

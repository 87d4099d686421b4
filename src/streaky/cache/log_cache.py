"""Multi-view log cache with optimistic, all-or-nothing writes.

The cache holds one ``View`` per selector. Reads never block: they return the
latest materialized list and a staleness flag, and schedule a background
refresh when an event loop is running. ``toggle`` checks that the signed-in
user owns the habit, applies a provisional log to every open view that the
record belongs in within a single synchronous step, awaits the durable write,
then either reconciles or restores every touched view to its prior contents.

All view mutation happens on the event loop thread. Store calls run on a
worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import time
from datetime import date
from typing import Callable, Optional, Union

from .. import dates
from ..domain.repositories import HabitLogStore
from ..domain.selectors import ViewSelector
from ..errors import Unauthorized, WriteConflict
from ..models.habit import HabitLog, placeholder_log_id
from .views import Listener, View, ViewSnapshot, dedupe, find, place

InvalidationHook = Callable[[str, str], None]


class Subscription:
    """Handle returned by ``LogCache.subscribe``; keeps its view alive until closed."""

    def __init__(self, cache: "LogCache", selector: ViewSelector, listener: Optional[Listener]):
        self._cache = cache
        self.selector = selector
        self._listener = listener
        self.closed = False

    def current(self) -> ViewSnapshot:
        return self._cache.get_view(self.selector)

    @property
    def data(self) -> tuple[HabitLog, ...]:
        return self.current().data

    @property
    def is_stale(self) -> bool:
        return self.current().is_stale

    def close(self) -> None:
        if not self.closed:
            self._cache._unsubscribe(self.selector, self._listener)
            self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LogCache:
    """Registry of keyed log views plus the optimistic ``toggle`` write path."""

    def __init__(
        self,
        store: HabitLogStore,
        *,
        current_user: Callable[[], Optional[int]],
        stale_after: float = 30.0,
        evict_after: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = dates.today,
    ):
        self._store = store
        self._current_user = current_user
        self.stale_after = stale_after
        self.evict_after = evict_after
        self._clock = clock
        self._today = today
        self._views: dict[ViewSelector, View] = {}
        self._hooks: list[InvalidationHook] = []
        self._refreshing: set[ViewSelector] = set()
        self._background: set[asyncio.Task] = set()
        self._owners: dict[str, int] = {}
        # Placeholder id -> durable record, or None when that write failed.
        # Kept while any toggle is in flight so rollbacks never resurrect a
        # settled placeholder.
        self._outcomes: dict[str, Optional[HabitLog]] = {}
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _view(self, selector: ViewSelector) -> View:
        view = self._views.get(selector)
        if view is None:
            view = View(selector=selector, last_access=self._clock())
            self._views[selector] = view
        return view

    def _is_stale(self, view: View) -> bool:
        if view.fetched_at is None or view.invalidated:
            return True
        return self._clock() - view.fetched_at >= self.stale_after

    def _snapshot(self, view: View) -> ViewSnapshot:
        return ViewSnapshot(tuple(view.logs), self._is_stale(view), view.error)

    def get_view(self, selector: ViewSelector) -> ViewSnapshot:
        """Return the current contents of a view, creating it on first read."""
        view = self._view(selector)
        view.last_access = self._clock()
        snapshot = self._snapshot(view)
        if snapshot.is_stale:
            self._schedule_refresh(selector)
        return snapshot

    def open_selectors(self) -> list[ViewSelector]:
        return list(self._views)

    def subscribe(self, selector: ViewSelector, listener: Optional[Listener] = None) -> Subscription:
        """Keep a view open and call ``listener`` with every new snapshot."""
        view = self._view(selector)
        if listener is not None:
            view.listeners.append(listener)
        else:
            # A bare subscription still pins the view against eviction.
            view.listeners.append(_noop_listener)
            listener = _noop_listener
        self.get_view(selector)
        return Subscription(self, selector, listener)

    def _unsubscribe(self, selector: ViewSelector, listener: Optional[Listener]) -> None:
        view = self._views.get(selector)
        if view is not None and listener in view.listeners:
            view.listeners.remove(listener)

    async def refresh(self, selector: ViewSelector) -> ViewSnapshot:
        """Fetch authoritative logs for a view and replace its contents.

        A fetch that overlaps a local write is discarded and the view stays
        stale, so older server data never overwrites an optimistic record.
        """
        view = self._view(selector)
        generation = view.generation
        self._refreshing.add(selector)
        try:
            rows = await asyncio.to_thread(self._store.fetch_logs, selector)
        except Exception as exc:
            view.error = exc
            self._notify(view)
            raise
        finally:
            self._refreshing.discard(selector)

        logs = dedupe(rows)
        if self._views.get(selector) is not view:
            return ViewSnapshot(tuple(logs), False)
        if view.generation != generation or view.pending_writes:
            view.invalidated = True
            # Pending writes reschedule on settle; otherwise fetch again now.
            if not view.pending_writes and view.listeners:
                self._schedule_refresh(selector)
            return self._snapshot(view)

        view.logs = logs
        view.fetched_at = self._clock()
        view.invalidated = False
        view.error = None
        self._notify(view)
        return self._snapshot(view)

    def _schedule_refresh(self, selector: ViewSelector) -> None:
        if selector in self._refreshing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._refreshing.add(selector)
        task = loop.create_task(self.refresh(selector))
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled():
            # Fetch errors are recorded on the view and surfaced through snapshots.
            task.exception()

    async def wait_idle(self) -> None:
        """Wait for every scheduled background refresh to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def find_log(self, habit_id: str, date_key: str, user_id: Optional[int] = None) -> Optional[HabitLog]:
        """Return the record currently believed to exist for ``(habit_id, date_key)``.

        Habit views are consulted first (all-time before narrowed), then the
        owning user's views.
        """
        habit_views = sorted(
            (v for v in self._views.values() if v.selector.habit_id == habit_id),
            key=lambda v: not v.selector.is_all_time,
        )
        user_views = sorted(
            (
                v
                for v in self._views.values()
                if user_id is not None and v.selector.user_id == user_id
            ),
            key=lambda v: not v.selector.is_all_time,
        )
        for view in habit_views + user_views:
            found = find(view.logs, habit_id, date_key)
            if found is not None:
                return found
        return None

    async def toggle(
        self,
        habit_id: str,
        date: Union[date, str, None] = None,
        completed: Optional[bool] = None,
    ) -> HabitLog:
        """Flip (or set) a habit's completion for a day, optimistically.

        Raises:
            Unauthorized: no signed-in user, or the habit belongs to someone
                else; nothing is touched.
            InvalidDate: ``date`` cannot be parsed; nothing is touched.
            WriteConflict: the durable write failed; every touched view has
                been restored.
        """
        user_id = self._current_user()
        if user_id is None:
            raise Unauthorized("Sign in to record habit completions")

        today_key = dates.to_key(self._today())
        date_key = today_key if date is None else dates.to_key(date)
        log_date = dates.parse_key(date_key)

        owner = await self._owner_of(habit_id)
        if owner is None or owner != user_id:
            raise Unauthorized(f"Habit {habit_id} does not belong to the signed-in user")

        if completed is None:
            known = self.find_log(habit_id, date_key, user_id)
            completed = not (known.completed if known is not None else False)

        provisional = HabitLog(
            id=placeholder_log_id(),
            habit_id=habit_id,
            date=log_date,
            completed=completed,
        )

        snapshots = {selector: view.logs for selector, view in self._views.items()}
        touched: list[View] = []
        for view in self._views.values():
            if view.selector.matches(habit_id, owner, date_key, today_key):
                view.logs = place(view.logs, provisional)
                view.generation += 1
                view.pending_writes += 1
                touched.append(view)
        for view in touched:
            self._notify(view)

        self._in_flight += 1
        try:
            durable = await asyncio.to_thread(
                self._store.upsert_log, habit_id, log_date, completed, user_id=owner
            )
        except Exception as exc:
            self._outcomes[provisional.id] = None
            for view in touched:
                view.pending_writes -= 1
                view.logs = self._resolve(snapshots[view.selector])
                view.generation += 1
                view.invalidated = True
            self._settle(touched)
            raise WriteConflict(
                f"Could not save completion for habit {habit_id} on {date_key}",
                habit_id=habit_id,
                date_key=date_key,
            ) from exc
        else:
            self._outcomes[provisional.id] = durable
        finally:
            self._in_flight -= 1
            if not self._in_flight:
                self._outcomes.clear()

        for view in touched:
            view.pending_writes -= 1
            view.logs = [durable if log is provisional else log for log in view.logs]
            view.generation += 1
            view.invalidated = True
        self._settle(touched)
        for hook in list(self._hooks):
            hook(habit_id, date_key)
        return durable

    async def _owner_of(self, habit_id: str) -> Optional[int]:
        if habit_id not in self._owners:
            owner = await asyncio.to_thread(self._store.habit_owner, habit_id)
            if owner is None:
                return None
            self._owners[habit_id] = owner
        return self._owners[habit_id]

    def _resolve(self, logs: list[HabitLog]) -> list[HabitLog]:
        """Swap settled placeholders in a restored snapshot for their outcome."""
        resolved = []
        for log in logs:
            if log.id in self._outcomes:
                log = self._outcomes[log.id]
                if log is None:
                    continue
            resolved.append(log)
        return resolved

    def _settle(self, touched: list[View]) -> None:
        for view in touched:
            if self._views.get(view.selector) is not view:
                continue
            self._notify(view)
            if view.listeners:
                self._schedule_refresh(view.selector)

    # ------------------------------------------------------------------
    # Invalidation and lifecycle
    # ------------------------------------------------------------------

    def add_invalidation_hook(self, hook: InvalidationHook) -> Callable[[], None]:
        """Call ``hook(habit_id, date_key)`` after every confirmed write."""
        self._hooks.append(hook)

        def remove() -> None:
            if hook in self._hooks:
                self._hooks.remove(hook)

        return remove

    def invalidate(self, selector: Optional[ViewSelector] = None) -> None:
        """Mark one view, or all views, as needing a fetch."""
        views = [self._views[selector]] if selector in self._views else []
        if selector is None:
            views = list(self._views.values())
        for view in views:
            view.invalidated = True
            if view.listeners:
                self._schedule_refresh(view.selector)

    def forget_habit(self, habit_id: str) -> None:
        """Drop a deleted habit's views and its rows from user views."""
        self._owners.pop(habit_id, None)
        for selector in [s for s in self._views if s.habit_id == habit_id]:
            del self._views[selector]
        for view in self._views.values():
            kept = [log for log in view.logs if log.habit_id != habit_id]
            if len(kept) != len(view.logs):
                view.logs = kept
                view.generation += 1
                self._notify(view)

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Remove unsubscribed views not read for ``evict_after`` seconds."""
        now = self._clock() if now is None else now
        idle = [
            selector
            for selector, view in self._views.items()
            if not view.listeners
            and not view.pending_writes
            and now - view.last_access >= self.evict_after
        ]
        for selector in idle:
            del self._views[selector]
        return len(idle)

    def clear(self) -> None:
        """Forget every view, e.g. on sign-out."""
        self._views.clear()
        self._owners.clear()

    def _notify(self, view: View) -> None:
        if not view.listeners:
            return
        snapshot = self._snapshot(view)
        for listener in list(view.listeners):
            listener(snapshot)


def _noop_listener(_snapshot: ViewSnapshot) -> None:
    return None

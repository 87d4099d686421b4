"""Periodic eviction of idle log views."""

from __future__ import annotations

import asyncio
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .cache import LogCache
from .logging_config import get_logger

logger = get_logger(__name__)


class ViewEvictionScheduler:
    """Runs ``LogCache.evict_idle`` on an interval.

    The cache is single-threaded. When ``loop`` is given, each run is handed
    to that event loop instead of touching the cache from the scheduler thread.
    """

    JOB_ID = "evict_idle_views"

    def __init__(
        self,
        cache: LogCache,
        interval_seconds: Optional[float] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.cache = cache
        self.interval_seconds = interval_seconds or cache.evict_after
        self.loop = loop
        self.scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = BackgroundScheduler()
        self.scheduler.add_job(
            func=self._tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name="Evict idle log views",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("View eviction scheduled", extra={"interval_seconds": self.interval_seconds})

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("View eviction stopped")

    def _tick(self) -> None:
        if self.loop is not None:
            self.loop.call_soon_threadsafe(self.run_once)
        else:
            self.run_once()

    def run_once(self) -> int:
        evicted = self.cache.evict_idle()
        if evicted:
            logger.debug("Evicted idle views", extra={"count": evicted})
        return evicted

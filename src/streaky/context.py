"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .cache import LogCache
from .config import BaseConfig
from .errors import Unauthorized
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelHabitLogRepository, SQLModelHabitRepository
from .logging_config import get_logger, setup_logging
from .models.user import User
from .services import auth
from .services.aggregator import HabitAggregator

logger = get_logger(__name__)


@dataclass
class AppContext:
    """Wires configuration, repositories, the log cache and the signed-in user."""

    config: BaseConfig
    engine: Engine
    session_factory: Callable[[], Session]
    habit_repo: SQLModelHabitRepository
    log_repo: SQLModelHabitLogRepository
    log_cache: LogCache = field(init=False)
    aggregator: HabitAggregator = field(init=False)
    current_user: Optional[User] = None

    def __post_init__(self) -> None:
        self.log_cache = LogCache(
            self.log_repo,
            current_user=self.current_user_id,
            stale_after=self.config.VIEW_STALE_SECONDS,
            evict_after=self.config.VIEW_EVICT_SECONDS,
        )
        self.aggregator = HabitAggregator(
            self.habit_repo,
            self.log_cache,
            current_user=self.current_user_id,
            window_days=self.config.COMPLETION_WINDOW_DAYS,
        )

    def current_user_id(self) -> Optional[int]:
        return self.current_user.id if self.current_user is not None else None

    def require_user_id(self) -> int:
        """Return the current user id or raise if nobody is signed in."""

        user_id = self.current_user_id()
        if user_id is None:
            raise Unauthorized("User is not authenticated")
        return user_id

    def sign_in(self, username: str, password: str) -> Optional[User]:
        user = auth.authenticate(
            username=username, password=password, session_factory=self.session_factory
        )
        if user is None:
            return None
        if self.current_user is not None and self.current_user.id != user.id:
            self.log_cache.clear()
            self.aggregator.reset()
        self.current_user = user
        logger.info("Signed in", extra={"user_id": user.id})
        return user

    def sign_out(self) -> None:
        """Drop the signed-in user and every cached view."""
        if self.current_user is not None:
            logger.info("Signed out", extra={"user_id": self.current_user.id})
        self.current_user = None
        self.log_cache.clear()
        self.aggregator.reset()


def create_app_context(config: Optional[BaseConfig] = None) -> AppContext:
    """Configure logging, create the engine and schema, and build the context."""

    if config is None:
        config = BaseConfig()

    setup_logging(config)
    engine, session_factory = bootstrap_database(config)
    logger.debug("Database ready", extra={"url": engine.url.render_as_string(hide_password=True)})

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        habit_repo=SQLModelHabitRepository(session_factory),
        log_repo=SQLModelHabitLogRepository(session_factory),
    )

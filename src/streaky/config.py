"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: float) -> float:
    """Read a positive number from the environment, falling back to ``default``."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "Streaky"
    DB_FILENAME = "streaky.db"

    def __init__(self) -> None:
        self.DEV_MODE = _env_bool("STREAKY_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("STREAKY_DATABASE_URL", self._build_sqlite_url())
        # Views older than this are served but flagged for a background refresh.
        self.VIEW_STALE_SECONDS = _env_number("STREAKY_STALE_SECONDS", 30)
        self.VIEW_EVICT_SECONDS = _env_number("STREAKY_EVICT_SECONDS", 300)
        self.COMPLETION_WINDOW_DAYS = int(_env_number("STREAKY_COMPLETION_WINDOW_DAYS", 30))

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("STREAKY_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        connect_args: dict[str, Any] = {}
        engine_options: dict[str, Any] = {"connect_args": connect_args}
        if self.DATABASE_URL.startswith("sqlite"):
            # Durable writes run on worker threads.
            connect_args["check_same_thread"] = False
        if self.DATABASE_URL in {"sqlite://", "sqlite:///:memory:"}:
            from sqlalchemy.pool import StaticPool

            engine_options["poolclass"] = StaticPool
        return engine_options


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""


class TestConfig(BaseConfig):
    """Configuration for tests: quiet console, throwaway database.

    With ``data_dir`` the database is a file inside it, so worker-thread
    reads and writes get their own connections. Without it the database
    lives in memory.
    """

    __test__ = False

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self._data_dir_override = Path(data_dir) if data_dir is not None else None
        super().__init__()
        self.DEV_MODE = False
        if self._data_dir_override is None:
            self.DATABASE_URL = "sqlite://"
        else:
            self.DATABASE_URL = self._build_sqlite_url()

    def _resolve_data_dir(self) -> Path:
        if self._data_dir_override is None:
            return super()._resolve_data_dir()
        self._data_dir_override.mkdir(parents=True, exist_ok=True)
        return self._data_dir_override

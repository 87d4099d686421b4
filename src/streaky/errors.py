"""Exception types raised by the habit log engine."""

from __future__ import annotations


class StreakyError(Exception):
    """Base class for all Streaky errors."""


class InvalidDate(StreakyError, ValueError):
    """A date input could not be parsed into a real calendar date."""


class InvalidRange(StreakyError, ValueError):
    """A date window is malformed or reversed."""


class Unauthorized(StreakyError, RuntimeError):
    """A write was attempted without a signed-in user."""


class WriteConflict(StreakyError, RuntimeError):
    """The durable write behind an optimistic update failed."""

    def __init__(self, message: str, *, habit_id: str | None = None, date_key: str | None = None):
        super().__init__(message)
        self.habit_id = habit_id
        self.date_key = date_key


class DuplicateRecord(StreakyError, RuntimeError):
    """A second log row was written for an existing (habit_id, date) pair."""


__all__ = [
    "DuplicateRecord",
    "InvalidDate",
    "InvalidRange",
    "StreakyError",
    "Unauthorized",
    "WriteConflict",
]

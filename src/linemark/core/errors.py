"""Exception hierarchy shared by the range engine and its stores."""

from __future__ import annotations

__all__ = [
    "LinemarkError",
    "MalformedRangeError",
    "UnknownAnnotationError",
    "PersistenceError",
]


class LinemarkError(Exception):
    """Base class for every error raised by linemark."""


class MalformedRangeError(LinemarkError, ValueError):
    """Raised when a line range violates ``1 <= start_line <= end_line``."""

    def __init__(self, start_line: object, end_line: object, *, reason: str | None = None) -> None:
        self.start_line = start_line
        self.end_line = end_line
        detail = reason or "start_line must not exceed end_line"
        super().__init__(f"Malformed line range [{start_line}, {end_line}]: {detail}")


class UnknownAnnotationError(LinemarkError, KeyError):
    """Raised when an operation requires a record id that is not tracked."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(record_id)

    def __str__(self) -> str:
        return f"Unknown annotation record: {self.record_id!r}"


class PersistenceError(LinemarkError):
    """Raised when a flush to the state store fails.

    The in-memory state is left untouched and the pending keys are kept so
    the next flush retries them.
    """

    def __init__(self, message: str, *, keys: frozenset[object] = frozenset()) -> None:
        self.keys = keys
        super().__init__(message)

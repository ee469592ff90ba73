"""Structured helpers for representing line spans."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

from .errors import MalformedRangeError


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Coerce ``value`` (ISO 8601 string or datetime) into an aware datetime."""

    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            instant = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def format_timestamp(value: datetime) -> str:
    """Return ``value`` as an ISO 8601 string."""

    return parse_timestamp(value).isoformat()


@dataclass(slots=True, frozen=True)
class LineRange(Sequence[int]):
    """Line-based span using 1-indexed, inclusive bounds."""

    start_line: int
    end_line: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start_line, "start_line")
        end = self._coerce_index(self.end_line, "end_line")
        if start < 1:
            raise MalformedRangeError(start, end, reason="lines are 1-indexed")
        if end < start:
            raise MalformedRangeError(start, end)
        object.__setattr__(self, "start_line", start)
        object.__setattr__(self, "end_line", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        if isinstance(value, bool):
            raise ValueError(f"LineRange {label} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"LineRange {label} must be an integer") from exc

    def __len__(self) -> int:
        return 2

    def __getitem__(self, index: int | slice) -> int | tuple[int, ...]:
        if isinstance(index, slice):
            return self.to_tuple()[index]
        if index == 0:
            return self.start_line
        if index == 1:
            return self.end_line
        raise IndexError("LineRange index out of range")

    def __iter__(self) -> Iterator[int]:
        yield self.start_line
        yield self.end_line

    @property
    def line_count(self) -> int:
        """Return the number of lines covered by the span (inclusive)."""

        return (self.end_line - self.start_line) + 1

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def with_bounds(self, start_line: int, end_line: int) -> "LineRange":
        """Return a copy of this span with new bounds, keeping any extra fields."""

        return _replace_bounds(self, start_line, end_line)

    def to_tuple(self) -> tuple[int, int]:
        """Return the span as a ``(start_line, end_line)`` tuple."""

        return (self.start_line, self.end_line)

    def to_dict(self) -> dict[str, Any]:
        """Return the span as an object with ``startLine``/``endLine`` keys."""

        return {"startLine": self.start_line, "endLine": self.end_line}

    @classmethod
    def from_value(cls, value: Any) -> "LineRange":
        """Coerce ``value`` into a :class:`LineRange`."""

        if isinstance(value, LineRange):
            return value
        if value is None:
            raise ValueError("LineRange value is required")
        if isinstance(value, Mapping):
            start = _first_present(value, "startLine", "start_line")
            end = _first_present(value, "endLine", "end_line")
            if start is None or end is None:
                raise ValueError("LineRange mappings require startLine and endLine")
            return cls(start, end)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("LineRange sequences must have exactly two entries")
            return cls(seq[0], seq[1])
        start = getattr(value, "start_line", None)
        end = getattr(value, "end_line", None)
        if start is not None and end is not None:
            return cls(start, end)
        raise TypeError("Unsupported LineRange input")


@dataclass(slots=True, frozen=True)
class TimestampedLineRange(LineRange):
    """Line span that also records when it was marked."""

    marked_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        LineRange.__post_init__(self)
        object.__setattr__(self, "marked_at", parse_timestamp(self.marked_at))

    def to_dict(self) -> dict[str, Any]:
        payload = LineRange.to_dict(self)
        payload["markedAt"] = format_timestamp(self.marked_at)
        return payload

    @classmethod
    def from_value(cls, value: Any) -> "TimestampedLineRange":
        if isinstance(value, TimestampedLineRange):
            return value
        if isinstance(value, Mapping):
            base = LineRange.from_value(value)
            marked_at = _first_present(value, "markedAt", "marked_at")
            if marked_at is None:
                return cls(base.start_line, base.end_line)
            return cls(base.start_line, base.end_line, parse_timestamp(marked_at))
        base = LineRange.from_value(value)
        marked_at = getattr(value, "marked_at", None)
        if marked_at is None:
            return cls(base.start_line, base.end_line)
        return cls(base.start_line, base.end_line, parse_timestamp(marked_at))


def range_from_dict(value: Mapping[str, Any]) -> LineRange:
    """Build the most specific range type for a serialized mapping."""

    if _first_present(value, "markedAt", "marked_at") is not None:
        return TimestampedLineRange.from_value(value)
    return LineRange.from_value(value)


def _replace_bounds(value: LineRange, start_line: int, end_line: int) -> LineRange:
    if isinstance(value, TimestampedLineRange):
        return TimestampedLineRange(start_line, end_line, value.marked_at)
    return type(value)(start_line, end_line)


def _first_present(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return None


__all__ = [
    "LineRange",
    "TimestampedLineRange",
    "format_timestamp",
    "parse_timestamp",
    "range_from_dict",
]

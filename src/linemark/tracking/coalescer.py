"""Fold newly marked spans into recent neighbours of the same record."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from ..core.errors import MalformedRangeError
from ..core.range_algebra import is_adjacent_or_overlapping
from ..core.ranges import LineRange, TimestampedLineRange, parse_timestamp

__all__ = ["MergeCoalescer"]


class MergeCoalescer:
    """Greedy, one-sided merge of an incoming span into existing spans.

    Only the incoming span is merged against existing ones; existing spans are
    never merged with each other. A zero window disables merging.
    """

    def __init__(self, window: timedelta = timedelta(minutes=5)) -> None:
        if window < timedelta(0):
            raise ValueError("merge window must not be negative")
        self._window = window

    @classmethod
    def from_minutes(cls, minutes: float) -> "MergeCoalescer":
        return cls(timedelta(minutes=max(0.0, float(minutes))))

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def enabled(self) -> bool:
        return self._window > timedelta(0)

    def coalesce(
        self,
        existing: Sequence[LineRange],
        start_line: int,
        end_line: int,
        marked_at: datetime,
    ) -> list[LineRange]:
        """Return the spans of a record after adding ``[start_line, end_line]``."""

        if start_line > end_line:
            raise MalformedRangeError(start_line, end_line)
        marked_at = parse_timestamp(marked_at)
        if not self.enabled:
            return [*existing, TimestampedLineRange(start_line, end_line, marked_at)]

        candidate = LineRange(start_line, end_line)
        survivors: list[LineRange] = []
        for item in existing:
            if self._absorbs(item, candidate, marked_at):
                candidate = LineRange(
                    min(candidate.start_line, item.start_line),
                    max(candidate.end_line, item.end_line),
                )
                continue
            survivors.append(item)
        survivors.append(TimestampedLineRange(candidate.start_line, candidate.end_line, marked_at))
        return survivors

    def _absorbs(self, item: LineRange, candidate: LineRange, marked_at: datetime) -> bool:
        item_marked_at = getattr(item, "marked_at", None)
        if item_marked_at is None:
            return False
        if abs(marked_at - parse_timestamp(item_marked_at)) > self._window:
            return False
        return is_adjacent_or_overlapping(item, candidate)

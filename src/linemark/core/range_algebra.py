"""Set operations over collections of inclusive line spans.

Every helper accepts any object exposing ``start_line``/``end_line`` so the
same algebra serves plain :class:`~linemark.core.ranges.LineRange` values,
timestamped read marks and feature-specific span types. Operations that
produce new spans take a ``clone`` callable which copies the original with
new bounds; the default copies dataclasses via :func:`dataclasses.replace`.

Malformed spans (``start_line > end_line``) are caller bugs and raise
:class:`~linemark.core.errors.MalformedRangeError` instead of being repaired.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence, TypeVar

from .errors import MalformedRangeError
from .ranges import parse_timestamp

__all__ = [
    "SupportsLineRange",
    "SupportsTimestampedLineRange",
    "CloneFunc",
    "default_clone",
    "contains_line",
    "unique_line_count",
    "all_unique_lines",
    "remove_line",
    "remove_range",
    "lines_since",
    "is_adjacent_or_overlapping",
]


class SupportsLineRange(Protocol):
    """Minimal capability required by the range algebra."""

    @property
    def start_line(self) -> int:  # pragma: no cover - Protocol placeholder
        ...

    @property
    def end_line(self) -> int:  # pragma: no cover - Protocol placeholder
        ...


class SupportsTimestampedLineRange(SupportsLineRange, Protocol):
    @property
    def marked_at(self) -> datetime:  # pragma: no cover - Protocol placeholder
        ...


R = TypeVar("R", bound=SupportsLineRange)
CloneFunc = Callable[[R, int, int], R]


def default_clone(original: R, start_line: int, end_line: int) -> R:
    """Copy ``original`` with new bounds."""

    with_bounds = getattr(original, "with_bounds", None)
    if callable(with_bounds):
        return with_bounds(start_line, end_line)
    if dataclasses.is_dataclass(original):
        return dataclasses.replace(original, start_line=start_line, end_line=end_line)  # type: ignore[type-var]
    raise TypeError(f"Cannot clone range of type {type(original).__name__}; pass clone=")


def _checked(item: R) -> R:
    if item.start_line > item.end_line:
        raise MalformedRangeError(item.start_line, item.end_line)
    return item


def _checked_all(ranges: Iterable[R]) -> list[R]:
    return [_checked(item) for item in ranges]


def contains_line(ranges: Iterable[SupportsLineRange], line: int) -> bool:
    """Return ``True`` when any span covers ``line``."""

    return any(item.start_line <= line <= item.end_line for item in _checked_all(ranges))


def _line_set(ranges: Iterable[SupportsLineRange]) -> set[int]:
    lines: set[int] = set()
    for item in _checked_all(ranges):
        lines.update(range(item.start_line, item.end_line + 1))
    return lines


def unique_line_count(ranges: Iterable[SupportsLineRange]) -> int:
    """Return how many distinct lines the spans cover (overlaps count once)."""

    return len(_line_set(ranges))


def all_unique_lines(ranges: Iterable[SupportsLineRange]) -> list[int]:
    """Return every covered line number, ascending and without duplicates."""

    return sorted(_line_set(ranges))


def remove_line(
    ranges: Sequence[R],
    line: int,
    clone: CloneFunc[R] = default_clone,
) -> list[R]:
    """Return ``ranges`` with ``line`` removed, splitting spans when needed."""

    result: list[R] = []
    for item in _checked_all(ranges):
        start, end = item.start_line, item.end_line
        if line < start or line > end:
            result.append(item)
        elif start == end:
            continue
        elif line == start:
            result.append(clone(item, start + 1, end))
        elif line == end:
            result.append(clone(item, start, end - 1))
        else:
            result.append(clone(item, start, line - 1))
            result.append(clone(item, line + 1, end))
    return result


def remove_range(
    ranges: Sequence[R],
    remove_start: int,
    remove_end: int,
    clone: CloneFunc[R] = default_clone,
) -> list[R]:
    """Return ``ranges`` with every line in ``[remove_start, remove_end]`` removed.

    Runs in a single pass over the spans; the width of the removal does not
    matter.
    """

    if remove_start > remove_end:
        raise MalformedRangeError(remove_start, remove_end)
    result: list[R] = []
    for item in _checked_all(ranges):
        start, end = item.start_line, item.end_line
        if remove_end < start or remove_start > end:
            result.append(item)
            continue
        if remove_start <= start and remove_end >= end:
            continue
        if remove_start > start:
            result.append(clone(item, start, remove_start - 1))
        if remove_end < end:
            result.append(clone(item, remove_end + 1, end))
    return result


def lines_since(ranges: Iterable[SupportsTimestampedLineRange], since: datetime) -> int:
    """Count distinct lines among spans marked at or after ``since``."""

    threshold = parse_timestamp(since)
    recent = [item for item in ranges if parse_timestamp(item.marked_at) >= threshold]
    return unique_line_count(recent)


def is_adjacent_or_overlapping(first: SupportsLineRange, second: SupportsLineRange) -> bool:
    """Return ``True`` when two spans touch or intersect."""

    return first.start_line <= second.end_line + 1 and second.start_line <= first.end_line + 1

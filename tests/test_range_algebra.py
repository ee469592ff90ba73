"""Tests for the line span set operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from linemark.core import range_algebra as algebra
from linemark.core.errors import MalformedRangeError
from linemark.core.ranges import LineRange, TimestampedLineRange


@dataclass
class _ColoredSpan:
    start_line: int
    end_line: int
    color: str = "red"


def _spans(*pairs: tuple[int, int]) -> list[LineRange]:
    return [LineRange(start, end) for start, end in pairs]


SAMPLES = [
    _spans((1, 1)),
    _spans((1, 15)),
    _spans((3, 5), (10, 12)),
    _spans((2, 8), (5, 11), (20, 20)),
    _spans((4, 4), (4, 4), (6, 9)),
]


def test_contains_line_checks_every_span() -> None:
    spans = _spans((3, 5), (10, 12))

    assert algebra.contains_line(spans, 3)
    assert algebra.contains_line(spans, 12)
    assert not algebra.contains_line(spans, 6)
    assert not algebra.contains_line([], 1)


def test_unique_line_count_ignores_overlap() -> None:
    spans = _spans((2, 8), (5, 11), (20, 20))

    assert algebra.unique_line_count(spans) == 11
    assert algebra.all_unique_lines(spans) == [2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 20]


@pytest.mark.parametrize("spans", SAMPLES)
def test_unique_lines_are_sorted_and_match_count(spans: list[LineRange]) -> None:
    lines = algebra.all_unique_lines(spans)

    assert len(lines) == algebra.unique_line_count(spans)
    assert all(a < b for a, b in zip(lines, lines[1:]))


@pytest.mark.parametrize("spans", SAMPLES)
def test_remove_uncovered_line_is_noop(spans: list[LineRange]) -> None:
    assert algebra.remove_line(spans, 30) == spans


@pytest.mark.parametrize("spans", SAMPLES[:4])
def test_remove_covered_line_drops_exactly_one_line(spans: list[LineRange]) -> None:
    for line in algebra.all_unique_lines(spans):
        result = algebra.remove_line(spans, line)

        assert algebra.unique_line_count(result) == algebra.unique_line_count(spans) - 1
        assert not algebra.contains_line(result, line)


def test_remove_line_cases() -> None:
    assert algebra.remove_line(_spans((5, 5)), 5) == []
    assert algebra.remove_line(_spans((5, 9)), 5) == _spans((6, 9))
    assert algebra.remove_line(_spans((5, 9)), 9) == _spans((5, 8))
    assert algebra.remove_line(_spans((5, 9)), 7) == _spans((5, 6), (8, 9))
    assert algebra.remove_line(_spans((5, 6)), 6) == _spans((5, 5))


def test_remove_range_splits_interior_removal() -> None:
    assert algebra.remove_range(_spans((1, 15)), 3, 12) == _spans((1, 2), (13, 15))


def test_remove_range_cases() -> None:
    spans = _spans((1, 4), (6, 10), (12, 14), (20, 22))

    result = algebra.remove_range(spans, 3, 13)

    assert result == _spans((1, 2), (14, 14), (20, 22))
    assert algebra.remove_range(spans, 30, 40) == spans
    assert algebra.remove_range(spans, 1, 22) == []


def test_remove_range_handles_huge_spans_without_iterating_lines() -> None:
    spans = _spans((1, 10), (2_000_000_000, 2_000_000_010))

    result = algebra.remove_range(spans, 5, 2_000_000_005)

    assert result == _spans((1, 4), (2_000_000_006, 2_000_000_010))


@pytest.mark.parametrize("spans", SAMPLES)
@pytest.mark.parametrize("window", [(1, 1), (3, 6), (5, 12), (9, 25)])
def test_remove_range_restores_with_removed_lines(spans: list[LineRange], window: tuple[int, int]) -> None:
    start, end = window
    original = set(algebra.all_unique_lines(spans))
    removed = {line for line in original if start <= line <= end}

    remaining = set(algebra.all_unique_lines(algebra.remove_range(spans, start, end)))

    assert remaining.isdisjoint(removed)
    assert remaining | removed == original


def test_clone_keeps_extra_fields_of_custom_spans() -> None:
    spans = [_ColoredSpan(1, 5, "blue")]

    result = algebra.remove_line(spans, 3)

    assert result == [_ColoredSpan(1, 2, "blue"), _ColoredSpan(4, 5, "blue")]


def test_custom_clone_is_used() -> None:
    calls: list[tuple[int, int]] = []

    def clone(original: LineRange, start: int, end: int) -> LineRange:
        calls.append((start, end))
        return LineRange(start, end)

    algebra.remove_range(_spans((1, 10)), 4, 6, clone)

    assert calls == [(1, 3), (7, 10)]


def test_malformed_input_fails_fast() -> None:
    broken = [_ColoredSpan(9, 3)]

    with pytest.raises(MalformedRangeError):
        algebra.remove_line(broken, 4)
    with pytest.raises(MalformedRangeError):
        algebra.unique_line_count(broken)
    with pytest.raises(MalformedRangeError):
        algebra.remove_range(_spans((1, 5)), 4, 2)


def test_lines_since_filters_by_mark_time() -> None:
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    spans = [
        TimestampedLineRange(1, 5, base - timedelta(days=2)),
        TimestampedLineRange(4, 8, base),
        TimestampedLineRange(20, 21, base + timedelta(hours=1)),
    ]

    assert algebra.lines_since(spans, base) == 7
    assert algebra.lines_since(spans, base - timedelta(days=3)) == 10
    assert algebra.lines_since(spans, base + timedelta(days=1)) == 0


def test_adjacency_includes_touching_spans() -> None:
    assert algebra.is_adjacent_or_overlapping(LineRange(1, 3), LineRange(4, 6))
    assert algebra.is_adjacent_or_overlapping(LineRange(4, 6), LineRange(1, 3))
    assert algebra.is_adjacent_or_overlapping(LineRange(2, 9), LineRange(4, 5))
    assert not algebra.is_adjacent_or_overlapping(LineRange(1, 3), LineRange(5, 6))

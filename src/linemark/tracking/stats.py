"""Reading statistics derived from ``read`` annotation records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from ..core.annotations import AnnotationKind, AnnotationRecord
from ..core.range_algebra import lines_since, unique_line_count

__all__ = [
    "ReadStats",
    "FileReadStats",
    "compute_read_stats",
    "compute_file_stats",
    "start_of_day",
    "start_of_week",
]


@dataclass(slots=True, frozen=True)
class ReadStats:
    """Totals shown in the status bar."""

    total_files: int = 0
    total_lines: int = 0
    today_lines: int = 0
    weekly_lines: int = 0


@dataclass(slots=True, frozen=True)
class FileReadStats:
    file_path: str
    lines_read: int
    last_read_at: datetime


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime, *, week_starts_on_monday: bool = True) -> datetime:
    """Return midnight of the first day of the week containing ``now``."""

    today = start_of_day(now)
    weekday = today.weekday()  # Monday == 0
    offset = weekday if week_starts_on_monday else (weekday + 1) % 7
    return today - timedelta(days=offset)


def _timestamped(record: AnnotationRecord) -> list:
    return [item for item in record.ranges if getattr(item, "marked_at", None) is not None]


def compute_read_stats(
    records: Iterable[AnnotationRecord],
    now: datetime,
    *,
    week_starts_on_monday: bool = True,
) -> ReadStats:
    """Aggregate unique line counts over every ``read`` record."""

    today = start_of_day(now)
    week = start_of_week(now, week_starts_on_monday=week_starts_on_monday)
    files = total = today_count = weekly = 0
    for record in records:
        if record.kind is not AnnotationKind.READ:
            continue
        files += 1
        total += unique_line_count(record.ranges)
        timestamped = _timestamped(record)
        today_count += lines_since(timestamped, today)
        weekly += lines_since(timestamped, week)
    return ReadStats(total_files=files, total_lines=total, today_lines=today_count, weekly_lines=weekly)


def compute_file_stats(record: AnnotationRecord) -> FileReadStats:
    last_read_at = record.created_at
    for item in _timestamped(record):
        if item.marked_at > last_read_at:
            last_read_at = item.marked_at
    return FileReadStats(
        file_path=record.file_path,
        lines_read=unique_line_count(record.ranges),
        last_read_at=last_read_at,
    )

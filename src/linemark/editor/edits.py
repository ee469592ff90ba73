"""Translate document edits into updated annotation line spans.

Edit events use 0-indexed line numbers (as editors report them) while
annotation spans are 1-indexed; :func:`translate_range` converts between the
two before comparing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..core.annotations import AnnotationRecord
from ..core.range_algebra import default_clone

__all__ = ["EditEvent", "EditTranslator", "translate_range"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class EditEvent:
    """Lines ``[change_start_line, change_end_line]`` were replaced.

    ``inserted_newline_count`` is the number of newline characters in the
    replacement text.
    """

    file_path: str
    change_start_line: int
    change_end_line: int
    inserted_newline_count: int = 0

    def __post_init__(self) -> None:
        if self.change_start_line < 0:
            raise ValueError("change_start_line must be >= 0")
        if self.change_end_line < self.change_start_line:
            raise ValueError("change_end_line must be >= change_start_line")
        if self.inserted_newline_count < 0:
            raise ValueError("inserted_newline_count must be >= 0")

    @property
    def removed_lines(self) -> int:
        return self.change_end_line - self.change_start_line

    @property
    def line_delta(self) -> int:
        """Net number of lines added (positive) or removed (negative)."""

        return self.inserted_newline_count - self.removed_lines

    @classmethod
    def from_replacement(
        cls,
        file_path: str,
        change_start_line: int,
        change_end_line: int,
        text: str,
    ) -> "EditEvent":
        """Build an event for ``text`` replacing the given 0-indexed lines."""

        return cls(file_path, change_start_line, change_end_line, text.count("\n"))

    @classmethod
    def from_text_change(
        cls,
        file_path: str,
        before_text: str,
        position: int,
        chars_removed: int,
        inserted_text: str,
    ) -> "EditEvent":
        """Build an event from a character-offset change against ``before_text``."""

        position = max(0, min(position, len(before_text)))
        removed_end = max(position, min(position + max(0, chars_removed), len(before_text)))
        start_line = before_text.count("\n", 0, position)
        end_line = start_line + before_text.count("\n", position, removed_end)
        return cls(file_path, start_line, end_line, inserted_text.count("\n"))


def translate_range(start_line: int, end_line: int, event: EditEvent) -> tuple[int, int]:
    """Return the 1-indexed bounds a span should have after ``event``."""

    delta = event.line_delta
    if delta == 0:
        return start_line, end_line

    change_start = event.change_start_line
    change_end = event.change_end_line
    start0 = start_line - 1
    end0 = end_line - 1

    if delta > 0:
        if change_start <= start0:
            start_line += delta
            end_line += delta
        elif change_start <= end0:
            end_line += delta
        return _clamp(start_line, end_line)

    if change_end < start0:
        return _clamp(start_line + delta, end_line + delta)
    if change_start > end0:
        return start_line, end_line

    anchor = max(1, change_start + 1)
    if change_start <= start0 and change_end >= end0:
        # The annotation stays at the deletion point instead of disappearing.
        return anchor, anchor
    if change_start <= start0:
        surviving = end0 - change_end
        return _clamp(anchor, max(anchor, anchor + surviving - 1))
    if change_end >= end0:
        return _clamp(start_line, max(start_line, change_start))
    return _clamp(start_line, max(start_line, end_line - event.removed_lines))


def _clamp(start_line: int, end_line: int) -> tuple[int, int]:
    start_line = max(1, start_line)
    return start_line, max(start_line, end_line)


class EditTranslator:
    """Shift or shrink every tracked span so it follows document edits."""

    def apply(self, records: Iterable[AnnotationRecord], event: EditEvent) -> set[str]:
        """Rewrite the spans of ``records`` on ``event.file_path``.

        Returns the ids of records whose spans changed.
        """

        changed: set[str] = set()
        if event.line_delta == 0:
            return changed
        for record in records:
            if record.file_path != event.file_path:
                continue
            updated = []
            record_changed = False
            for item in record.ranges:
                start, end = translate_range(item.start_line, item.end_line, event)
                if (start, end) != (item.start_line, item.end_line):
                    item = default_clone(item, start, end)
                    record_changed = True
                updated.append(item)
            if record_changed:
                record.ranges = updated
                changed.add(record.id)
        if changed:
            LOGGER.debug(
                "Edit at %s:%d-%d (delta=%d) moved %d record(s)",
                event.file_path,
                event.change_start_line,
                event.change_end_line,
                event.line_delta,
                len(changed),
            )
        return changed

    def apply_all(
        self,
        records: Sequence[AnnotationRecord],
        events: Iterable[EditEvent],
    ) -> set[str]:
        """Apply ``events`` in order and return every record id they moved."""

        changed: set[str] = set()
        for event in events:
            changed |= self.apply(records, event)
        return changed

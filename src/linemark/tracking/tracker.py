"""Caller-facing facade tying the range engine to persistence.

The tracker owns one :class:`LineRangeStore`, hydrated lazily from the
:class:`StateStore` blob of its tool name. Every mutation records the ids it
touched in a :class:`WriteBehindCache`; when the cache flushes, only those
records are merged into the persisted blob. All calls are expected on one
thread (the host's event loop), so no locking is done here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from ..core.annotations import AnnotationKind, AnnotationRecord
from ..core.range_algebra import (
    contains_line,
    lines_since,
    remove_line,
    remove_range,
    unique_line_count,
)
from ..core.ranges import LineRange, TimestampedLineRange, parse_timestamp
from ..editor.edits import EditEvent, EditTranslator
from ..services.events import AnnotationEventBus, AnnotationsChanged, AnnotationsPersisted
from ..services.settings import TrackerSettings
from ..services.state_store import StateStore
from ..services.write_behind import WriteBehindCache
from .coalescer import MergeCoalescer
from .stats import FileReadStats, ReadStats, compute_file_stats, compute_read_stats
from .store import LineRangeStore

__all__ = ["AnnotationTracker"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class AnnotationTracker:
    """Mark, unmark, query and edit-track annotation line spans."""

    def __init__(
        self,
        state_store: StateStore,
        *,
        settings: TrackerSettings | None = None,
        event_bus: AnnotationEventBus | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Clock | None = None,
        translator: EditTranslator | None = None,
    ) -> None:
        self._state_store = state_store
        self._settings = settings or TrackerSettings()
        self._tool_name = self._settings.tool_name
        self._bus = event_bus or AnnotationEventBus()
        self._clock = clock or _local_now
        self._translator = translator or EditTranslator()
        self._coalescer = MergeCoalescer(self._settings.merge_window)
        self._records: LineRangeStore | None = None
        self._writer: WriteBehindCache[str] = WriteBehindCache(
            self._write_records,
            delay=self._settings.flush_delay_seconds,
            loop=loop,
            name=f"{self._tool_name} writer",
        )

    @classmethod
    def from_settings(cls, settings: TrackerSettings, **kwargs: Any) -> "AnnotationTracker":
        return cls(StateStore(settings.storage_path), settings=settings, **kwargs)

    def __enter__(self) -> "AnnotationTracker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def settings(self) -> TrackerSettings:
        return self._settings

    @property
    def event_bus(self) -> AnnotationEventBus:
        return self._bus

    @property
    def coalescer(self) -> MergeCoalescer:
        return self._coalescer

    @property
    def store(self) -> LineRangeStore:
        return self._ensure_loaded()

    @property
    def is_loaded(self) -> bool:
        return self._records is not None

    @property
    def is_closed(self) -> bool:
        return self._writer.disposed

    @property
    def pending_ids(self) -> frozenset[str]:
        return self._writer.pending

    # ------------------------------------------------------------------
    # Marking
    # ------------------------------------------------------------------
    def mark_range(
        self,
        record_id: str,
        start_line: int,
        end_line: int,
        timestamp: datetime | str | None = None,
    ) -> None:
        """Add ``[start_line, end_line]`` to a record, merging with recent neighbours."""

        self._require_open()
        store = self._ensure_loaded()
        record = store.require(record_id)
        LineRange(start_line, end_line)  # validates bounds
        marked_at = parse_timestamp(timestamp) if timestamp is not None else self._clock()
        ranges = self._coalescer.coalesce(record.ranges, start_line, end_line, marked_at)
        if store.set_ranges(record_id, ranges, now=self._clock()):
            self._changed(record.file_path, {record_id}, source="mark")

    def mark_read(
        self,
        file_path: str,
        start_line: int,
        end_line: int,
        marked_at: datetime | str | None = None,
    ) -> str:
        """Mark lines of ``file_path`` as read and return the read record id."""

        self._require_open()
        store = self._ensure_loaded()
        record = store.find_by_file(file_path, AnnotationKind.READ)
        if record is not None:
            self.mark_range(record.id, start_line, end_line, marked_at)
            return record.id
        instant = parse_timestamp(marked_at) if marked_at is not None else self._clock()
        record = store.create(
            file_path,
            [TimestampedLineRange(start_line, end_line, instant)],
            kind=AnnotationKind.READ,
            now=self._clock(),
        )
        self._changed(file_path, {record.id}, source="mark")
        return record.id

    def create_annotation(
        self,
        file_path: str,
        ranges: Iterable[LineRange | Mapping[str, Any] | tuple[int, int]],
        *,
        kind: AnnotationKind = AnnotationKind.NOTE,
        payload: Mapping[str, Any] | None = None,
    ) -> str:
        """Create a record with explicit spans; no coalescing is applied."""

        self._require_open()
        spans = [LineRange.from_value(item) for item in ranges]
        record = self._ensure_loaded().create(
            file_path, spans, kind=kind, payload=payload, now=self._clock()
        )
        self._changed(file_path, {record.id}, source="create")
        return record.id

    # ------------------------------------------------------------------
    # Unmarking
    # ------------------------------------------------------------------
    def unmark_line(self, record_id: str, line: int) -> bool:
        """Remove one line from a record; returns whether anything changed."""

        self._require_open()
        record = self._ensure_loaded().get(record_id)
        if record is None:
            return False
        return self._replace_ranges(record, remove_line(record.ranges, line), source="unmark")

    def unmark_range(self, record_id: str, start_line: int, end_line: int) -> bool:
        """Remove ``[start_line, end_line]`` from a record; returns whether anything changed."""

        self._require_open()
        record = self._ensure_loaded().get(record_id)
        if record is None:
            return False
        updated = remove_range(record.ranges, start_line, end_line)
        return self._replace_ranges(record, updated, source="unmark")

    def delete_annotation(self, record_id: str) -> bool:
        self._require_open()
        store = self._ensure_loaded()
        record = store.get(record_id)
        if record is None:
            return False
        store.delete(record_id)
        self._changed(record.file_path, {record_id}, source="delete")
        return True

    def clear_file(self, file_path: str) -> set[str]:
        self._require_open()
        removed = self._ensure_loaded().clear_file(file_path)
        if removed:
            self._changed(file_path, removed, source="clear")
        return removed

    def clear_all(self) -> set[str]:
        self._require_open()
        removed = self._ensure_loaded().clear_all()
        if removed:
            self._changed(None, removed, source="clear")
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_record(self, record_id: str) -> AnnotationRecord | None:
        return self._ensure_loaded().get(record_id)

    def records_for_file(self, file_path: str) -> list[AnnotationRecord]:
        return self._ensure_loaded().records_for_file(file_path)

    def is_line_marked(self, record_id: str, line: int) -> bool:
        record = self._ensure_loaded().get(record_id)
        return record is not None and contains_line(record.ranges, line)

    def is_read(self, file_path: str, line: int) -> bool:
        record = self._ensure_loaded().find_by_file(file_path, AnnotationKind.READ)
        return record is not None and contains_line(record.ranges, line)

    def unique_marked_line_count(self, record_id: str) -> int:
        record = self._ensure_loaded().get(record_id)
        return unique_line_count(record.ranges) if record is not None else 0

    def marked_line_count_since(self, record_id: str, since: datetime | str) -> int:
        record = self._ensure_loaded().get(record_id)
        if record is None:
            return 0
        timestamped = [item for item in record.ranges if isinstance(item, TimestampedLineRange)]
        return lines_since(timestamped, parse_timestamp(since))

    def read_stats(self) -> ReadStats:
        return compute_read_stats(
            self._ensure_loaded(),
            self._clock(),
            week_starts_on_monday=self._settings.week_starts_on_monday,
        )

    def file_read_stats(self, file_path: str) -> FileReadStats | None:
        record = self._ensure_loaded().find_by_file(file_path, AnnotationKind.READ)
        return compute_file_stats(record) if record is not None else None

    # ------------------------------------------------------------------
    # Edit tracking
    # ------------------------------------------------------------------
    def on_edit(self, file_path: str, event: EditEvent) -> set[str]:
        """Move every span of ``file_path`` to follow ``event``.

        Returns the ids of records whose spans changed. Files without
        annotations are ignored.
        """

        return self.on_edits(file_path, (event,))

    def on_edits(self, file_path: str, events: Iterable[EditEvent]) -> set[str]:
        """Apply a batch of edits (in the order the editor reported them)."""

        self._require_open()
        records = self._ensure_loaded().records_for_file(file_path)
        if not records:
            return set()
        batch = [self._bind_event(file_path, event) for event in events]
        changed = self._translator.apply_all(records, batch)
        if changed:
            self._changed(file_path, changed, source="edit")
        return changed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def flush(self) -> frozenset[str]:
        """Persist every pending record now."""

        return self._writer.flush()

    def evict(self) -> None:
        """Drop the in-memory records; the next call re-hydrates from storage."""

        if self._writer.has_pending:
            self._writer.flush()
        self._records = None
        LOGGER.debug("Evicted in-memory %s records", self._tool_name)

    def close(self) -> None:
        """Force pending writes through; the tracker accepts no further changes."""

        self._writer.dispose()

    async def aclose(self) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> LineRangeStore:
        if self._records is None:
            payload = self._state_store.load(self._tool_name)
            self._records = LineRangeStore.from_payload(payload)
            LOGGER.debug("Hydrated %d %s record(s)", len(self._records), self._tool_name)
        return self._records

    def _require_open(self) -> None:
        if self._writer.disposed:
            raise RuntimeError(f"{self._tool_name} tracker has been closed")

    def _replace_ranges(self, record: AnnotationRecord, updated: list[LineRange], *, source: str) -> bool:
        if updated == record.ranges:
            return False
        self._ensure_loaded().set_ranges(record.id, updated, now=self._clock())
        self._changed(record.file_path, {record.id}, source=source)
        return True

    def _changed(self, file_path: str | None, record_ids: set[str], *, source: str) -> None:
        self._writer.mark_dirty(*record_ids)
        self._bus.publish(AnnotationsChanged(file_path=file_path, record_ids=record_ids, source=source))

    def _write_records(self, record_ids: frozenset[str]) -> None:
        store = self._ensure_loaded()
        payload = self._state_store.load(self._tool_name)
        self._state_store.save(self._tool_name, store.merge_into(payload, record_ids))
        self._bus.publish(AnnotationsPersisted(record_ids, source=self._tool_name))

    @staticmethod
    def _bind_event(file_path: str, event: EditEvent) -> EditEvent:
        if event.file_path == file_path:
            return event
        return EditEvent(
            file_path,
            event.change_start_line,
            event.change_end_line,
            event.inserted_newline_count,
        )

"""In-memory store of annotation records keyed by their stable id."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Iterator, Mapping, MutableMapping

from ..core.annotations import AnnotationKind, AnnotationRecord
from ..core.errors import UnknownAnnotationError
from ..core.ranges import LineRange

__all__ = ["LineRangeStore", "PAYLOAD_VERSION"]

LOGGER = logging.getLogger(__name__)
PAYLOAD_VERSION = 1


class LineRangeStore:
    """Insertion-ordered mapping of record id to :class:`AnnotationRecord`.

    The store owns the "delete the record once its last span is gone" rule so
    no caller can leave an empty record behind.
    """

    def __init__(self, records: Iterable[AnnotationRecord] = ()) -> None:
        self._records: dict[str, AnnotationRecord] = {}
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AnnotationRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, record_id: str) -> AnnotationRecord | None:
        return self._records.get(record_id)

    def require(self, record_id: str) -> AnnotationRecord:
        record = self._records.get(record_id)
        if record is None:
            raise UnknownAnnotationError(record_id)
        return record

    def records_for_file(self, file_path: str) -> list[AnnotationRecord]:
        return [record for record in self._records.values() if record.file_path == file_path]

    def record_ids_for_file(self, file_path: str) -> set[str]:
        return {record.id for record in self.records_for_file(file_path)}

    def find_by_file(self, file_path: str, kind: AnnotationKind) -> AnnotationRecord | None:
        for record in self._records.values():
            if record.file_path == file_path and record.kind is kind:
                return record
        return None

    def files(self) -> list[str]:
        seen: dict[str, None] = {}
        for record in self._records.values():
            seen.setdefault(record.file_path, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def add(self, record: AnnotationRecord) -> AnnotationRecord:
        if record.id in self._records:
            raise ValueError(f"Annotation record {record.id!r} already exists")
        self._records[record.id] = record
        return record

    def create(
        self,
        file_path: str,
        ranges: Iterable[LineRange],
        *,
        kind: AnnotationKind = AnnotationKind.NOTE,
        payload: Mapping[str, Any] | None = None,
        record_id: str | None = None,
        now: datetime | None = None,
    ) -> AnnotationRecord:
        record = AnnotationRecord(
            file_path=file_path,
            ranges=list(ranges),
            kind=kind,
            id=record_id or "",
            payload=dict(payload or {}),
        )
        if now is not None:
            record.created_at = now
            record.updated_at = now
        return self.add(record)

    def set_ranges(
        self,
        record_id: str,
        ranges: Iterable[LineRange],
        *,
        now: datetime | None = None,
    ) -> bool:
        """Replace a record's spans, deleting it when none remain.

        Returns ``True`` when the stored spans actually changed.
        """

        record = self.require(record_id)
        updated = list(ranges)
        if not updated:
            del self._records[record_id]
            LOGGER.debug("Deleted empty annotation record %s", record_id)
            return True
        if updated == record.ranges:
            return False
        record.ranges = updated
        record.touch(now)
        return True

    def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def clear_file(self, file_path: str) -> set[str]:
        removed = self.record_ids_for_file(file_path)
        for record_id in removed:
            del self._records[record_id]
        return removed

    def clear_all(self) -> set[str]:
        removed = set(self._records)
        self._records.clear()
        return removed

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_payload(self) -> dict[str, Any]:
        return {
            "version": PAYLOAD_VERSION,
            "records": {record.id: record.to_dict() for record in self._records.values()},
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "LineRangeStore":
        """Rebuild a store, skipping entries that cannot be parsed."""

        store = cls()
        if not payload:
            return store
        entries = payload.get("records")
        if not isinstance(entries, Mapping):
            LOGGER.warning("Annotation payload has no 'records' mapping; starting empty")
            return store
        for key, entry in entries.items():
            if not isinstance(entry, Mapping):
                LOGGER.warning("Skipping annotation %s: entry is not an object", key)
                continue
            data = dict(entry)
            data.setdefault("id", key)
            try:
                record = AnnotationRecord.from_dict(data)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed annotation %s: %s", key, exc)
                continue
            if record.id in store:
                LOGGER.warning("Skipping duplicate annotation id %s", record.id)
                continue
            store.add(record)
        return store

    def merge_into(self, payload: Mapping[str, Any] | None, record_ids: Iterable[str]) -> dict[str, Any]:
        """Return ``payload`` with only ``record_ids`` rewritten from this store.

        Ids that are no longer tracked are removed from the payload; every
        other persisted record is left exactly as it was.
        """

        merged: dict[str, Any] = dict(payload or {})
        existing = merged.get("records")
        records: MutableMapping[str, Any] = dict(existing) if isinstance(existing, Mapping) else {}
        for record_id in record_ids:
            record = self._records.get(record_id)
            if record is None:
                records.pop(record_id, None)
            else:
                records[record_id] = record.to_dict()
        merged["records"] = records
        merged["version"] = PAYLOAD_VERSION
        return merged

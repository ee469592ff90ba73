"""Dataclasses representing annotation records and their line spans."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from .ranges import LineRange, _utcnow, format_timestamp, parse_timestamp, range_from_dict

__all__ = ["AnnotationKind", "AnnotationRecord", "new_record_id"]


class AnnotationKind(Enum):
    """Feature that owns an annotation record."""

    NOTE = "note"
    DIAGNOSTIC = "diagnostic"
    LINE_HIGHLIGHT = "line_highlight"
    SYNTAX_GREYOUT = "syntax_greyout"
    READ = "read"

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIXES[self]


_ID_PREFIXES: dict[AnnotationKind, str] = {
    AnnotationKind.NOTE: "note",
    AnnotationKind.DIAGNOSTIC: "diag",
    AnnotationKind.LINE_HIGHLIGHT: "hl",
    AnnotationKind.SYNTAX_GREYOUT: "grey",
    AnnotationKind.READ: "read",
}


def new_record_id(kind: AnnotationKind) -> str:
    return f"{kind.id_prefix}_{uuid.uuid4().hex[:16]}"


@dataclass(slots=True)
class AnnotationRecord:
    """Annotation anchored to one or more line spans of a single file.

    ``ranges`` keeps insertion order so iteration is stable; the order carries
    no other meaning. A record is only valid while it owns at least one range.
    """

    file_path: str
    ranges: list[LineRange]
    kind: AnnotationKind = AnnotationKind.NOTE
    id: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = new_record_id(self.kind)
        self.ranges = [LineRange.from_value(item) for item in self.ranges]
        if not self.ranges:
            raise ValueError("AnnotationRecord requires at least one range")

    def touch(self, when: datetime | None = None) -> None:
        self.updated_at = when or _utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation of the record."""

        return {
            "id": self.id,
            "kind": self.kind.value,
            "filePath": self.file_path,
            "lines": [item.to_dict() for item in self.ranges],
            "payload": dict(self.payload),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnnotationRecord":
        """Rebuild a record from :meth:`to_dict` output."""

        lines = data.get("lines")
        if not isinstance(lines, Sequence) or isinstance(lines, (str, bytes)):
            raise ValueError("Annotation record requires a 'lines' list")
        ranges = [range_from_dict(item) for item in lines if isinstance(item, Mapping)]
        payload = data.get("payload")
        record = cls(
            file_path=str(data["filePath"]),
            ranges=ranges,
            kind=AnnotationKind(data.get("kind", AnnotationKind.NOTE.value)),
            id=str(data.get("id") or ""),
            payload=dict(payload) if isinstance(payload, Mapping) else {},
        )
        if data.get("createdAt"):
            record.created_at = parse_timestamp(data["createdAt"])
        if data.get("updatedAt"):
            record.updated_at = parse_timestamp(data["updatedAt"])
        return record

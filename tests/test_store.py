from __future__ import annotations

from datetime import datetime, timezone

import pytest

from linemark.core.annotations import AnnotationKind, AnnotationRecord
from linemark.core.errors import UnknownAnnotationError
from linemark.core.ranges import LineRange, TimestampedLineRange
from linemark.tracking.store import PAYLOAD_VERSION, LineRangeStore

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _store_with_two_files() -> LineRangeStore:
    store = LineRangeStore()
    store.create("a.py", [LineRange(1, 3)], record_id="note_a")
    store.create("a.py", [LineRange(8, 9)], kind=AnnotationKind.READ, record_id="read_a")
    store.create("b.py", [LineRange(2, 2)], record_id="note_b")
    return store


def test_lookup_by_file_and_kind() -> None:
    store = _store_with_two_files()

    assert len(store) == 3
    assert "note_a" in store
    assert store.record_ids_for_file("a.py") == {"note_a", "read_a"}
    assert store.find_by_file("a.py", AnnotationKind.READ).id == "read_a"
    assert store.find_by_file("b.py", AnnotationKind.READ) is None
    assert store.files() == ["a.py", "b.py"]


def test_require_raises_for_unknown_ids() -> None:
    store = LineRangeStore()

    assert store.get("missing") is None
    with pytest.raises(UnknownAnnotationError) as excinfo:
        store.require("missing")
    assert isinstance(excinfo.value, KeyError)


def test_add_rejects_duplicate_ids() -> None:
    store = _store_with_two_files()

    with pytest.raises(ValueError):
        store.add(AnnotationRecord(file_path="c.py", ranges=[LineRange(1, 1)], id="note_a"))


def test_set_ranges_reports_changes_and_touches_record() -> None:
    store = _store_with_two_files()

    assert not store.set_ranges("note_a", [LineRange(1, 3)], now=NOW)
    assert store.set_ranges("note_a", [LineRange(1, 4)], now=NOW)
    assert store.require("note_a").ranges == [LineRange(1, 4)]
    assert store.require("note_a").updated_at == NOW


def test_set_ranges_deletes_record_without_spans() -> None:
    store = _store_with_two_files()

    assert store.set_ranges("note_b", [])
    assert "note_b" not in store
    assert store.files() == ["a.py"]


def test_clear_file_and_clear_all_return_removed_ids() -> None:
    store = _store_with_two_files()

    assert store.clear_file("a.py") == {"note_a", "read_a"}
    assert store.clear_file("a.py") == set()
    assert store.clear_all() == {"note_b"}
    assert len(store) == 0


def test_iteration_is_safe_while_deleting() -> None:
    store = _store_with_two_files()

    for record in store:
        store.delete(record.id)

    assert len(store) == 0


def test_payload_roundtrip_keeps_timestamps() -> None:
    store = LineRangeStore()
    store.create("a.py", [TimestampedLineRange(4, 6, NOW)], kind=AnnotationKind.READ, record_id="read_a", now=NOW)

    payload = store.to_payload()
    restored = LineRangeStore.from_payload(payload)

    assert payload["version"] == PAYLOAD_VERSION
    record = restored.require("read_a")
    assert record.kind is AnnotationKind.READ
    assert record.ranges == [TimestampedLineRange(4, 6, NOW)]
    assert record.created_at == NOW


def test_from_payload_skips_malformed_entries(caplog: pytest.LogCaptureFixture) -> None:
    payload = {
        "version": 1,
        "records": {
            "good": {"filePath": "a.py", "lines": [{"startLine": 1, "endLine": 2}]},
            "inverted": {"filePath": "a.py", "lines": [{"startLine": 5, "endLine": 2}]},
            "empty": {"filePath": "a.py", "lines": []},
            "nofile": {"lines": [{"startLine": 1, "endLine": 1}]},
            "junk": "not a record",
        },
    }

    with caplog.at_level("WARNING"):
        store = LineRangeStore.from_payload(payload)

    assert [record.id for record in store] == ["good"]
    assert "inverted" in caplog.text


def test_from_payload_handles_missing_data() -> None:
    assert len(LineRangeStore.from_payload(None)) == 0
    assert len(LineRangeStore.from_payload({"records": ["nope"]})) == 0


def test_merge_into_rewrites_only_named_ids() -> None:
    store = _store_with_two_files()
    persisted = {
        "version": 1,
        "records": {
            "note_a": {"stale": True},
            "note_b": {"stale": True},
            "gone": {"stale": True},
            "foreign": {"kept": True},
        },
    }

    merged = store.merge_into(persisted, ["note_a", "gone"])

    assert merged["records"]["note_a"]["filePath"] == "a.py"
    assert merged["records"]["note_b"] == {"stale": True}
    assert merged["records"]["foreign"] == {"kept": True}
    assert "gone" not in merged["records"]
    assert persisted["records"]["note_a"] == {"stale": True}

"""Command line inspection of persisted annotations."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence, TextIO

from .core.annotations import AnnotationRecord
from .services.settings import SettingsStore
from .tracking.tracker import AnnotationTracker
from .utils.logging import setup_logging


def _record_summary(record: AnnotationRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "kind": record.kind.value,
        "file": record.file_path,
        "ranges": [list(item) for item in record.ranges],
    }


def _emit(payload: Any, *, as_json: bool, destination: TextIO) -> None:
    if as_json:
        json.dump(payload, destination, indent=2, default=str)
        destination.write("\n")
        return
    if isinstance(payload, dict):
        for key, value in payload.items():
            destination.write(f"{key}: {value}\n")
        return
    for row in payload:
        spans = ", ".join(f"{start}-{end}" if start != end else str(start) for start, end in row["ranges"])
        destination.write(f"{row['id']}\t{row['kind']}\t{row['file']}\t{spans}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linemark", description="Inspect tracked line annotations.")
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.json")
    parser.add_argument("--storage", type=Path, default=None, help="Directory holding the state files")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to the console")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("stats", help="Show reading statistics")
    commands.add_parser("list", help="List every annotation record")
    show = commands.add_parser("show", help="Show the annotations of one file")
    show.add_argument("file", help="File path as stored in the annotations")
    return parser


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    args = _build_parser().parse_args(argv)
    destination = stdout or sys.stdout

    overrides = {"storage_dir": str(args.storage)} if args.storage else None
    settings = SettingsStore(args.settings).load(overrides=overrides)
    if args.verbose or settings.debug_logging:
        setup_logging(logging.DEBUG)

    with AnnotationTracker.from_settings(settings) as tracker:
        if args.command == "stats":
            stats = tracker.read_stats()
            _emit(
                {
                    "files": stats.total_files,
                    "lines": stats.total_lines,
                    "today": stats.today_lines,
                    "this_week": stats.weekly_lines,
                },
                as_json=args.json,
                destination=destination,
            )
        elif args.command == "list":
            rows = [_record_summary(record) for record in tracker.store]
            _emit(rows, as_json=args.json, destination=destination)
        else:
            records = tracker.records_for_file(args.file)
            if not records:
                destination.write(f"No annotations for {args.file}\n")
                return 1
            _emit([_record_summary(record) for record in records], as_json=args.json, destination=destination)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

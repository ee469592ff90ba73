"""Small file helpers shared by the state and settings stores."""

from __future__ import annotations

import codecs
import os
import tempfile
from pathlib import Path

__all__ = ["read_text", "write_text"]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16",
    codecs.BOM_UTF16_BE: "utf-16",
}


def read_text(path: Path | str) -> str:
    """Read a UTF-8 (or BOM-marked UTF-16) file with normalized newlines."""

    raw = Path(path).read_bytes()
    encoding = "utf-8"
    for bom, candidate in _BOM_MAP.items():
        if raw.startswith(bom):
            encoding = candidate
            break
    text = raw.decode(encoding)
    if "\r" in text:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text


def write_text(path: Path | str, content: str, *, atomic: bool = True) -> Path:
    """Write ``content`` as UTF-8, replacing the target atomically by default.

    Readers never observe a half-written file: the body goes to a temporary
    sibling which is fsynced and then moved over the target.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        target.write_text(content, encoding="utf-8")
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target

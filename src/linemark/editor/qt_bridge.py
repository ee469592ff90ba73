"""Feed ``QTextDocument`` edits into the line tracker.

``QTextDocument.contentsChange`` reports character offsets after the change
has been applied, so the bridge keeps a shadow copy of the previous text to
work out which lines were replaced.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .edits import EditEvent

QTextDocument: Any = None

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtGui import QTextDocument as _QtTextDocument  # type: ignore[import-not-found]

    QTextDocument = _QtTextDocument
except Exception:  # pragma: no cover - runtime fallback
    QTextDocument = None

__all__ = ["QtDocumentEditSource", "qt_available"]

LOGGER = logging.getLogger(__name__)

EditSink = Callable[[EditEvent], None]


def qt_available() -> bool:
    return QTextDocument is not None


class QtDocumentEditSource:
    """Translate ``contentsChange`` signals of one document into :class:`EditEvent`."""

    def __init__(self, document: Any, file_path: str, sink: EditSink) -> None:
        if QTextDocument is None:
            raise RuntimeError("QtDocumentEditSource requires PySide6")
        self._document = document
        self._file_path = file_path
        self._sink = sink
        self._text = document.toPlainText()
        self._connected = True
        document.contentsChange.connect(self._handle_contents_change)

    @property
    def file_path(self) -> str:
        return self._file_path

    def resync(self) -> None:
        """Refresh the shadow copy after the document was replaced wholesale."""

        self._text = self._document.toPlainText()

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        try:
            self._document.contentsChange.disconnect(self._handle_contents_change)
        except (RuntimeError, TypeError):  # pragma: no cover - document already destroyed
            LOGGER.debug("contentsChange already disconnected for %s", self._file_path)

    def _handle_contents_change(self, position: int, chars_removed: int, chars_added: int) -> None:
        before = self._text
        after = self._document.toPlainText()
        self._text = after
        if len(before) - chars_removed + chars_added != len(after):
            # Qt over-reports counts for some whole-document changes.
            position, chars_removed, chars_added = _diff_bounds(before, after)
        inserted = after[position : position + chars_added]
        event = EditEvent.from_text_change(self._file_path, before, position, chars_removed, inserted)
        if event.line_delta == 0:
            return
        self._sink(event)


def _diff_bounds(before: str, after: str) -> tuple[int, int, int]:
    """Return ``(position, removed, added)`` covering the differing middle section."""

    limit = min(len(before), len(after))
    prefix = 0
    while prefix < limit and before[prefix] == after[prefix]:
        prefix += 1
    suffix = 0
    while (
        suffix < limit - prefix
        and before[len(before) - 1 - suffix] == after[len(after) - 1 - suffix]
    ):
        suffix += 1
    return prefix, len(before) - prefix - suffix, len(after) - prefix - suffix

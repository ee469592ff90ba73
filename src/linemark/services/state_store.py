"""Key-value blob store that keeps one JSON document per tool name."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Mapping

from ..utils.file_io import read_text, write_text

__all__ = ["StateStore", "DEFAULT_STATE_DIR"]

LOGGER = logging.getLogger(__name__)
DEFAULT_STATE_DIR = Path.home() / ".linemark" / "state"
_TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class StateStore:
    """Persistence adapter storing ``<root>/<tool>.json`` blobs."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root).expanduser() if root is not None else DEFAULT_STATE_DIR

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, tool_name: str) -> Path:
        if not _TOOL_NAME_PATTERN.match(tool_name) or tool_name.startswith("."):
            raise ValueError(f"Invalid tool name: {tool_name!r}")
        return self._root / f"{tool_name}.json"

    def load(self, tool_name: str) -> dict[str, Any] | None:
        """Return the stored payload, or ``None`` when nothing usable exists."""

        path = self.path_for(tool_name)
        if not path.exists():
            return None
        try:
            data = json.loads(read_text(path))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            LOGGER.warning("State file %s is not valid JSON: %s", path, exc)
            return None
        if not isinstance(data, Mapping):
            LOGGER.warning("State file %s does not contain an object", path)
            return None
        LOGGER.debug("Loaded %s state from %s", tool_name, path)
        return dict(data)

    def save(self, tool_name: str, payload: Mapping[str, Any]) -> Path:
        """Write ``payload`` atomically and return the target path."""

        path = self.path_for(tool_name)
        body = json.dumps(payload, indent=2, sort_keys=True)
        write_text(path, body + "\n", atomic=True)
        LOGGER.debug("Saved %s state to %s", tool_name, path)
        return path

    def delete(self, tool_name: str) -> bool:
        path = self.path_for(tool_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        LOGGER.debug("Deleted %s state at %s", tool_name, path)
        return True

    def available_tools(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(entry.stem for entry in self._root.glob("*.json") if entry.is_file())

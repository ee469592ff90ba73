"""Tracker settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping

from ..utils.file_io import read_text, write_text

__all__ = ["TrackerSettings", "SettingsStore", "DEFAULT_SETTINGS_PATH"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".linemark"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "LINEMARK_STORAGE_DIR": "storage_dir",
    "LINEMARK_TOOL_NAME": "tool_name",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "LINEMARK_WEEK_STARTS_ON_MONDAY": "week_starts_on_monday",
    "LINEMARK_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "LINEMARK_MERGE_WINDOW_MINUTES": "merge_window_minutes",
    "LINEMARK_FLUSH_DELAY": "flush_delay_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class TrackerSettings:
    """User-configurable settings persisted between sessions."""

    merge_window_minutes: float = 5.0
    flush_delay_seconds: float = 0.3
    week_starts_on_monday: bool = True
    storage_dir: str = str(_SETTINGS_DIR / "state")
    tool_name: str = "annotations"
    debug_logging: bool = False

    @property
    def merge_window(self) -> timedelta:
        return timedelta(minutes=max(0.0, self.merge_window_minutes))

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_dir).expanduser()


class SettingsStore:
    """Persistence adapter for :class:`TrackerSettings`."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> TrackerSettings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = TrackerSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = _coerce(TrackerSettings(**data))
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = TrackerSettings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: TrackerSettings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data: Dict[str, Any] = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        write_text(self._path, json.dumps(data, indent=2, sort_keys=True))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(read_text(self._path))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return dict(data) if isinstance(data, Mapping) else {}

    def _apply_overrides(
        self,
        settings: TrackerSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> TrackerSettings:
        filtered = {key: value for key, value in _filter_fields(overrides).items() if value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = _coerce(replace(settings, **filtered))
        return settings

    def _apply_env_overrides(self, settings: TrackerSettings) -> TrackerSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(TrackerSettings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _coerce(settings: TrackerSettings) -> TrackerSettings:
    return replace(
        settings,
        merge_window_minutes=max(0.0, float(settings.merge_window_minutes)),
        flush_delay_seconds=max(0.0, float(settings.flush_delay_seconds)),
        week_starts_on_monday=bool(settings.week_starts_on_monday),
        storage_dir=str(settings.storage_dir),
        tool_name=str(settings.tool_name),
        debug_logging=bool(settings.debug_logging),
    )

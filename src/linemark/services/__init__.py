"""Persistence, notification and configuration services."""

from .events import AnnotationEventBus, AnnotationsChanged, AnnotationsPersisted
from .settings import SettingsStore, TrackerSettings
from .state_store import StateStore
from .write_behind import WriteBehindCache

__all__ = [
    "AnnotationEventBus",
    "AnnotationsChanged",
    "AnnotationsPersisted",
    "SettingsStore",
    "StateStore",
    "TrackerSettings",
    "WriteBehindCache",
]

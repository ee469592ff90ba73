"""Line-anchored annotations that follow document edits."""

from .core import (
    AnnotationKind,
    AnnotationRecord,
    LineRange,
    LinemarkError,
    MalformedRangeError,
    PersistenceError,
    TimestampedLineRange,
    UnknownAnnotationError,
)
from .editor import EditEvent, EditTranslator
from .services import AnnotationEventBus, StateStore, TrackerSettings, WriteBehindCache
from .tracking import AnnotationTracker, LineRangeStore, MergeCoalescer

__version__ = "0.1.0"

__all__ = [
    "AnnotationEventBus",
    "AnnotationKind",
    "AnnotationRecord",
    "AnnotationTracker",
    "EditEvent",
    "EditTranslator",
    "LineRange",
    "LineRangeStore",
    "LinemarkError",
    "MalformedRangeError",
    "MergeCoalescer",
    "PersistenceError",
    "StateStore",
    "TimestampedLineRange",
    "TrackerSettings",
    "UnknownAnnotationError",
    "WriteBehindCache",
]

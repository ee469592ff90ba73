"""Core domain types and the line-range algebra."""

from . import range_algebra
from .annotations import AnnotationKind, AnnotationRecord
from .errors import LinemarkError, MalformedRangeError, PersistenceError, UnknownAnnotationError
from .ranges import LineRange, TimestampedLineRange

__all__ = [
    "AnnotationKind",
    "AnnotationRecord",
    "LineRange",
    "LinemarkError",
    "MalformedRangeError",
    "PersistenceError",
    "TimestampedLineRange",
    "UnknownAnnotationError",
    "range_algebra",
]

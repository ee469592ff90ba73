"""Annotation record storage, coalescing and the tracker facade."""

from .coalescer import MergeCoalescer
from .stats import FileReadStats, ReadStats
from .store import LineRangeStore
from .tracker import AnnotationTracker

__all__ = [
    "AnnotationTracker",
    "FileReadStats",
    "LineRangeStore",
    "MergeCoalescer",
    "ReadStats",
]

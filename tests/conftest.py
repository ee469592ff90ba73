"""Shared pytest fixtures."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from linemark.services.settings import TrackerSettings  # noqa: E402
from linemark.services.state_store import StateStore  # noqa: E402
from linemark.tracking.tracker import AnnotationTracker  # noqa: E402


class FakeClock:
    """Deterministic clock that tests advance by hand."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    # Wednesday
    return FakeClock(datetime(2024, 5, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state")


@pytest.fixture
def tracker(state_store: StateStore, clock: FakeClock) -> AnnotationTracker:
    return AnnotationTracker(state_store, settings=TrackerSettings(), clock=clock)

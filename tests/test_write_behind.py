"""Tests for the debounced write-behind cache."""

from __future__ import annotations

import asyncio

import pytest

from linemark.core.errors import PersistenceError
from linemark.services.write_behind import WriteBehindCache


class _Recorder:
    def __init__(self, failures: int = 0) -> None:
        self.batches: list[frozenset[str]] = []
        self.failures = failures

    def __call__(self, batch: frozenset[str]) -> None:
        if self.failures:
            self.failures -= 1
            raise OSError("disk unavailable")
        self.batches.append(batch)


def test_keys_stay_pending_without_a_loop() -> None:
    recorder = _Recorder()
    cache: WriteBehindCache[str] = WriteBehindCache(recorder)

    cache.mark_dirty("a", "b")
    cache.mark_dirty("a")

    assert cache.pending == frozenset({"a", "b"})
    assert not cache.is_scheduled
    assert recorder.batches == []

    assert cache.flush() == frozenset({"a", "b"})
    assert recorder.batches == [frozenset({"a", "b"})]
    assert cache.flush() == frozenset()
    assert cache.flush_count == 1


def test_failed_flush_keeps_keys_for_retry() -> None:
    recorder = _Recorder(failures=1)
    cache: WriteBehindCache[str] = WriteBehindCache(recorder, name="test writer")
    cache.mark_dirty("a")

    with pytest.raises(PersistenceError) as excinfo:
        cache.flush()

    assert excinfo.value.keys == frozenset({"a"})
    assert "test writer" in str(excinfo.value)
    assert cache.pending == frozenset({"a"})

    cache.mark_dirty("b")
    assert cache.flush() == frozenset({"a", "b"})


def test_dispose_flushes_and_rejects_new_keys() -> None:
    recorder = _Recorder()
    cache: WriteBehindCache[str] = WriteBehindCache(recorder)
    cache.mark_dirty("a")

    cache.dispose()
    cache.dispose()

    assert recorder.batches == [frozenset({"a"})]
    assert cache.disposed
    with pytest.raises(RuntimeError):
        cache.mark_dirty("b")


def test_dispose_marks_disposed_even_when_flush_fails() -> None:
    cache: WriteBehindCache[str] = WriteBehindCache(_Recorder(failures=1))
    cache.mark_dirty("a")

    with pytest.raises(PersistenceError):
        cache.dispose()

    assert cache.disposed


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(ValueError):
        WriteBehindCache(_Recorder(), delay=-1)


@pytest.mark.asyncio
async def test_burst_of_marks_flushes_once() -> None:
    recorder = _Recorder()
    cache: WriteBehindCache[str] = WriteBehindCache(recorder, delay=0.02)

    for key in ("a", "b", "a", "c"):
        cache.mark_dirty(key)
        await asyncio.sleep(0)

    assert cache.is_scheduled
    await asyncio.sleep(0.1)

    assert recorder.batches == [frozenset({"a", "b", "c"})]
    assert cache.flush_count == 1
    assert not cache.has_pending
    assert not cache.is_scheduled


@pytest.mark.asyncio
async def test_timer_retries_after_failure() -> None:
    recorder = _Recorder(failures=1)
    cache: WriteBehindCache[str] = WriteBehindCache(recorder, delay=0.01)

    cache.mark_dirty("a")
    await asyncio.sleep(0.1)

    assert recorder.batches == [frozenset({"a"})]
    assert not cache.has_pending


@pytest.mark.asyncio
async def test_explicit_flush_cancels_timer() -> None:
    recorder = _Recorder()
    cache: WriteBehindCache[str] = WriteBehindCache(recorder, delay=0.05)

    cache.mark_dirty("a")
    cache.flush()
    await asyncio.sleep(0.1)

    assert recorder.batches == [frozenset({"a"})]


def test_explicit_loop_is_used() -> None:
    loop = asyncio.new_event_loop()
    try:
        recorder = _Recorder()
        cache: WriteBehindCache[str] = WriteBehindCache(recorder, delay=0.01, loop=loop)

        cache.mark_dirty("a")
        assert cache.is_scheduled
        loop.run_until_complete(asyncio.sleep(0.05))

        assert recorder.batches == [frozenset({"a"})]
    finally:
        loop.close()

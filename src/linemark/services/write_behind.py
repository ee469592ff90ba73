"""Debounced write-behind buffer for dirty keys.

Mutations mark keys dirty; the keys accumulate (set union) until the event
loop has been quiet for ``delay`` seconds, then the whole batch is handed to
the flush handler in one call. ``dispose`` forces any pending batch through so
nothing is lost on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, Hashable, TypeVar

from ..core.errors import PersistenceError

__all__ = ["WriteBehindCache"]

LOGGER = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
FlushHandler = Callable[[frozenset[K]], None]


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class WriteBehindCache(Generic[K]):
    """Collects dirty keys and flushes them after a quiet period.

    Without an event loop (neither passed in nor running) the timer is never
    armed and keys stay pending until :meth:`flush` is called explicitly.
    """

    def __init__(
        self,
        flush_handler: FlushHandler[K],
        *,
        delay: float = 0.3,
        loop: asyncio.AbstractEventLoop | None = None,
        name: str = "write-behind",
    ) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")
        self._flush_handler = flush_handler
        self._delay = delay
        self._loop = loop
        self._name = name
        self._dirty: set[K] = set()
        self._timer: asyncio.TimerHandle | None = None
        self._disposed = False
        self._flush_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def pending(self) -> frozenset[K]:
        return frozenset(self._dirty)

    @property
    def has_pending(self) -> bool:
        return bool(self._dirty)

    @property
    def is_scheduled(self) -> bool:
        return self._timer is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def flush_count(self) -> int:
        return self._flush_count

    def mark_dirty(self, *keys: K) -> None:
        if self._disposed:
            raise RuntimeError(f"{self._name} has been disposed")
        if not keys:
            return
        self._dirty.update(keys)
        self._schedule()

    def flush(self) -> frozenset[K]:
        """Hand every pending key to the flush handler right away.

        Raises :class:`PersistenceError` when the handler fails; the keys are
        put back into the dirty set so the next flush retries them.
        """

        self._cancel_timer()
        if not self._dirty:
            return frozenset()
        batch = frozenset(self._dirty)
        self._dirty.clear()
        try:
            self._flush_handler(batch)
        except Exception as exc:
            self._dirty |= batch
            raise PersistenceError(f"{self._name} flush failed: {exc}", keys=batch) from exc
        self._flush_count += 1
        LOGGER.debug("%s flushed %d key(s)", self._name, len(batch))
        return batch

    def dispose(self) -> None:
        """Cancel the timer and force a final flush."""

        if self._disposed:
            return
        try:
            self.flush()
        finally:
            self._disposed = True
            self._cancel_timer()

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------
    def _schedule(self) -> None:
        loop = self._loop or _running_loop()
        if loop is None or loop.is_closed():
            return
        self._cancel_timer()
        self._timer = loop.call_later(self._delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        try:
            self.flush()
        except PersistenceError as exc:
            LOGGER.warning("%s; %d key(s) kept for retry", exc, len(exc.keys))
            self._schedule()

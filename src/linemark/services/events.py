"""Synchronous notification bus for annotation changes.

UI layers (decorations, tree views, status bars) subscribe here instead of
holding a reference to the tracker.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Any, Callable, List, MutableMapping, Type

LOGGER = logging.getLogger(__name__)

__all__ = [
    "AnnotationEvent",
    "AnnotationsChanged",
    "AnnotationsPersisted",
    "AnnotationEventBus",
]


class AnnotationEvent:
    """Base class for annotation notifications."""

    __slots__ = ("record_ids", "source")

    def __init__(self, record_ids: frozenset[str] | set[str] = frozenset(), *, source: str | None = None) -> None:
        self.record_ids = frozenset(record_ids)
        self.source = source


class AnnotationsChanged(AnnotationEvent):
    """Published after spans of one file changed in memory."""

    __slots__ = ("file_path",)

    def __init__(
        self,
        *,
        file_path: str | None,
        record_ids: frozenset[str] | set[str] = frozenset(),
        source: str | None = None,
    ) -> None:
        super().__init__(record_ids, source=source)
        self.file_path = file_path


class AnnotationsPersisted(AnnotationEvent):
    """Published once a batch of records reached the state store."""

    __slots__ = ()


Handler = Callable[[AnnotationEvent], None]


@dataclass(slots=True)
class _Subscriber:
    event_type: Type[AnnotationEvent]
    identity_func: Any
    identity_target: object | weakref.ReferenceType[Any] | None
    strong_handler: Handler | None
    weak_ref: Callable[[], Handler | None] | None = None

    def resolve(self) -> Handler | None:
        if self.weak_ref is not None:
            return self.weak_ref()
        return self.strong_handler

    def matches(self, handler: Handler) -> bool:
        func = getattr(handler, "__func__", handler)
        if func is not self.identity_func:
            return False
        bound = getattr(handler, "__self__", None)
        target = self.identity_target
        if isinstance(target, weakref.ReferenceType):
            return target() is bound
        return target is bound


class AnnotationEventBus:
    """Pub/sub bus; weak subscriptions vanish with their owner."""

    def __init__(self) -> None:
        self._subscribers: MutableMapping[Type[AnnotationEvent], List[_Subscriber]] = {}

    def subscribe(
        self,
        event_type: Type[AnnotationEvent],
        handler: Handler,
        *,
        weak: bool = False,
    ) -> None:
        strong, weak_ref = self._wrap_handler(handler, weak=weak)
        bound = getattr(handler, "__self__", None)
        identity_target: object | weakref.ReferenceType[Any] | None = bound
        if weak and bound is not None:
            try:
                identity_target = weakref.ref(bound)
            except TypeError:
                identity_target = bound
        subscriber = _Subscriber(
            event_type=event_type,
            identity_func=getattr(handler, "__func__", handler),
            identity_target=identity_target,
            strong_handler=strong,
            weak_ref=weak_ref,
        )
        self._subscribers.setdefault(event_type, []).append(subscriber)

    def unsubscribe(self, event_type: Type[AnnotationEvent], handler: Handler) -> None:
        subscribers = self._subscribers.get(event_type)
        if not subscribers:
            return
        subscribers[:] = [sub for sub in subscribers if not sub.matches(handler)]
        if not subscribers:
            self._subscribers.pop(event_type, None)

    def publish(self, event: AnnotationEvent) -> None:
        to_invoke: list[Handler] = []
        for event_type, subscribers in list(self._subscribers.items()):
            if not isinstance(event, event_type):
                continue
            live: list[_Subscriber] = []
            for subscriber in subscribers:
                callback = subscriber.resolve()
                if callback is None:
                    continue
                live.append(subscriber)
                to_invoke.append(callback)
            if live:
                subscribers[:] = live
            else:
                self._subscribers.pop(event_type, None)
        for callback in to_invoke:
            try:
                callback(event)
            except Exception:  # pragma: no cover - subscriber isolation
                LOGGER.exception("Annotation event subscriber failed")

    @staticmethod
    def _wrap_handler(handler: Handler, *, weak: bool) -> tuple[Handler | None, Callable[[], Handler | None] | None]:
        if not weak:
            return handler, None
        try:
            return None, weakref.WeakMethod(handler)  # type: ignore[arg-type]
        except TypeError:
            pass
        try:
            return None, weakref.ref(handler)
        except TypeError:
            return handler, None

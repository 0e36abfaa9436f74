"""In-memory publish/subscribe channel for run events."""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, TypeVar

import structlog

from .events import Event

LOGGER = structlog.get_logger("pickle_runtime")

E = TypeVar("E", bound=Event)
Handler = Callable[[E], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventBus:
    """Synchronous event dispatcher shared by every worker of a run.

    ``publish`` holds a re-entrant lock for the whole dispatch, so handlers never
    see two events interleaved. It does not order events across scenarios; see
    ``canonical_order.CanonicalEventQueue`` for that.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._handlers: dict[type[Event], list[Handler]] = defaultdict(list)
        self._lock = threading.RLock()

    def now(self) -> datetime:
        return self._clock()

    def subscribe(self, kind: type[E], handler: Handler) -> None:
        with self._lock:
            self._handlers[kind].append(handler)

    def publish(self, event: Event) -> None:
        with self._lock:
            for handler in self._handlers_for(type(event)):
                try:
                    handler(event)
                except Exception:
                    LOGGER.exception(
                        "handler_failed",
                        event_kind=type(event).__name__,
                        handler=getattr(handler, "__qualname__", repr(handler)),
                    )

    def _handlers_for(self, kind: type[Event]) -> list[Handler]:
        # Exact kind first, then handlers registered on base classes.
        handlers: list[Handler] = []
        for cls in kind.__mro__:
            if cls in self._handlers:
                handlers.extend(self._handlers[cls])
            if cls is Event:
                break
        return handlers

"""Deterministic event order for reporters that assume a sequential run."""

from __future__ import annotations

import threading
from typing import Callable

from .event_bus import EventBus
from .events import (
    Event,
    RunFinished,
    RunStarted,
    ScenarioEvent,
    ScenarioFinished,
    ScenarioStarted,
    SnippetsSuggested,
    SourceRead,
    StepDefined,
)

_RANK_RUN_STARTED = 0
_RANK_SOURCE_READ = 1
_RANK_STEP_DEFINED = 2
_RANK_SNIPPETS = 3
_RANK_SCENARIO = 4
_RANK_RUN_FINISHED = 5

CanonicalKey = tuple[int, str, int, int, int]


def canonical_key(event: Event) -> CanonicalKey:
    """Return the sort key of ``event``; equal keys compare equal."""

    if isinstance(event, RunStarted):
        return (_RANK_RUN_STARTED, "", 0, 0, 0)
    if isinstance(event, SourceRead):
        return (_RANK_SOURCE_READ, "", 0, 0, 0)
    if isinstance(event, StepDefined):
        return (_RANK_STEP_DEFINED, "", 0, 0, 0)
    if isinstance(event, SnippetsSuggested):
        return (_RANK_SNIPPETS, "", 0, 0, 0)
    if isinstance(event, ScenarioEvent):
        scenario = event.scenario
        if isinstance(event, ScenarioStarted):
            phase, index = 0, 0
        elif isinstance(event, ScenarioFinished):
            phase, index = 2, 0
        else:
            phase, index = 1, getattr(event, "step_index", 0)
        return (_RANK_SCENARIO, scenario.uri, scenario.line, phase, index)
    if isinstance(event, RunFinished):
        return (_RANK_RUN_FINISHED, "", 0, 0, 0)
    raise TypeError(f"No canonical position for {type(event).__name__}")


def compare(left: Event, right: Event) -> int:
    """Three-way comparison of two events in canonical order."""

    left_key = canonical_key(left)
    right_key = canonical_key(right)
    return (left_key > right_key) - (left_key < right_key)


class CanonicalEventQueue:
    """Buffers bus events and replays them in canonical order on RunFinished.

    Exposes the same ``subscribe`` surface as :class:`EventBus`, so reporters
    written for a sequential run can be attached unchanged to a pooled one.
    """

    def __init__(self, source: EventBus) -> None:
        self._delegate = EventBus()
        self._queue: list[Event] = []
        self._lock = threading.Lock()
        source.subscribe(Event, self._receive)

    def subscribe(self, kind: type[Event], handler: Callable[[Event], None]) -> None:
        self._delegate.subscribe(kind, handler)

    def _receive(self, event: Event) -> None:
        with self._lock:
            self._queue.append(event)
            if not isinstance(event, RunFinished):
                return
            # sorted() is stable: equal keys keep arrival order.
            ordered = sorted(self._queue, key=canonical_key)
            self._queue.clear()
        for queued in ordered:
            self._delegate.publish(queued)

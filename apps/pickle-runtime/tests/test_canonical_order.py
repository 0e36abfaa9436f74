import itertools
import random
from datetime import datetime, timezone

import pytest

from pickle_runtime.canonical_order import CanonicalEventQueue, canonical_key, compare
from pickle_runtime.event_bus import EventBus
from pickle_runtime.events import (
    Event,
    RunFinished,
    RunStarted,
    ScenarioFinished,
    ScenarioStarted,
    SnippetsSuggested,
    SourceRead,
    StepDefined,
    StepFinished,
    StepStarted,
)
from pickle_runtime.models import Result, Scenario, Status, Step

LESS_THAN = -1
EQUAL_TO = 0
GREATER_THAN = 1


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _case_started(uri: str, line: int) -> ScenarioStarted:
    return ScenarioStarted(instant=_now(), scenario=Scenario(uri=uri, line=line, name=f"{uri}:{line}"))


run_started = RunStarted(instant=_now())
source_read = SourceRead(instant=_now(), uri="uri", source="source")
suggested = SnippetsSuggested(instant=_now(), uri="uri", line=3, snippets=())
feature1_case1 = _case_started("feature1", 1)
feature1_case2 = _case_started("feature1", 9)
feature1_case3 = _case_started("feature1", 11)
feature2_case1 = _case_started("feature2", 1)
run_finished = RunFinished(instant=_now())

ALL_EVENTS = [
    run_started,
    source_read,
    suggested,
    feature1_case1,
    feature1_case2,
    feature1_case3,
    feature2_case1,
    run_finished,
]


def test_run_started_sorts_first() -> None:
    assert compare(run_started, run_started) == EQUAL_TO
    for event in ALL_EVENTS[1:]:
        assert compare(run_started, event) == LESS_THAN


def test_source_read_sorts_before_snippets_and_scenarios() -> None:
    assert compare(source_read, run_started) == GREATER_THAN
    assert compare(source_read, source_read) == EQUAL_TO
    for event in ALL_EVENTS[2:]:
        assert compare(source_read, event) == LESS_THAN


def test_snippets_sort_before_scenarios() -> None:
    assert compare(suggested, run_started) == GREATER_THAN
    assert compare(suggested, source_read) == GREATER_THAN
    assert compare(suggested, suggested) == EQUAL_TO
    for event in ALL_EVENTS[3:]:
        assert compare(suggested, event) == LESS_THAN


def test_step_definitions_sort_between_sources_and_snippets() -> None:
    defined = StepDefined(instant=_now(), location="steps:have", pattern="I have cukes")

    assert compare(defined, source_read) == GREATER_THAN
    assert compare(defined, suggested) == LESS_THAN
    assert compare(defined, feature1_case1) == LESS_THAN
    assert compare(defined, StepDefined(instant=_now(), location="steps:eat", pattern="eat")) == EQUAL_TO


def test_scenario_events_sort_by_uri_then_line() -> None:
    for case in (feature1_case1, feature1_case2, feature1_case3, feature2_case1):
        for earlier in (run_started, source_read, suggested):
            assert compare(case, earlier) == GREATER_THAN
        assert compare(case, run_finished) == LESS_THAN

    assert compare(feature1_case1, feature1_case2) < EQUAL_TO
    assert compare(feature1_case2, feature1_case3) < EQUAL_TO
    assert compare(feature1_case3, feature2_case1) < EQUAL_TO


def test_run_finished_sorts_last() -> None:
    assert compare(run_finished, run_finished) == EQUAL_TO
    for event in ALL_EVENTS[:-1]:
        assert compare(run_finished, event) == GREATER_THAN


def test_events_of_one_scenario_keep_lifecycle_order() -> None:
    scenario = Scenario(uri="feature1", line=1, name="case")
    step = Step(text="a step", line=2)
    result = Result(status=Status.PASSED)
    started = ScenarioStarted(instant=_now(), scenario=scenario)
    step_started = StepStarted(instant=_now(), scenario=scenario, step_index=0, step=step)
    step_finished = StepFinished(instant=_now(), scenario=scenario, step_index=0, step=step, result=result)
    finished = ScenarioFinished(instant=_now(), scenario=scenario, result=result)

    assert compare(started, step_started) == LESS_THAN
    assert compare(step_started, step_finished) == EQUAL_TO
    assert compare(step_finished, finished) == LESS_THAN
    assert compare(finished, started) == GREATER_THAN


def test_comparison_is_a_total_order() -> None:
    for a, b in itertools.product(ALL_EVENTS, repeat=2):
        assert compare(a, b) == -compare(b, a)
    for a, b, c in itertools.product(ALL_EVENTS, repeat=3):
        if compare(a, b) <= 0 and compare(b, c) <= 0:
            assert compare(a, c) <= 0


def test_unknown_event_kind_has_no_position() -> None:
    class Custom(Event):
        pass

    with pytest.raises(TypeError):
        canonical_key(Custom(instant=_now()))


def test_queue_replays_in_canonical_order_on_run_finished() -> None:
    bus = EventBus()
    queue = CanonicalEventQueue(bus)
    received: list[Event] = []
    queue.subscribe(Event, received.append)

    shuffled = ALL_EVENTS[1:-1]
    random.Random(3).shuffle(shuffled)
    bus.publish(run_started)
    for event in shuffled:
        bus.publish(event)
    assert received == []

    bus.publish(run_finished)

    assert received == ALL_EVENTS

from pickle_runtime.event_bus import EventBus
from pickle_runtime.events import Event, SnippetsSuggested, StepDefined, StepFinished, StepStarted
from pickle_runtime.glue import PendingStep, SkipStep, StepRegistry
from pickle_runtime.models import Scenario, Status, Step
from pickle_runtime.runner import Runner


def _registry() -> StepRegistry:
    registry = StepRegistry()

    @registry.step(r"I have (\d+) cukes")
    def have(world, count):
        world.cukes = int(count)

    @registry.step(r"I eat (\d+) cukes")
    def eat(world, count):
        world.cukes -= int(count)

    @registry.step(r"I have (\d+) cukes left")
    def left(world, count):
        assert world.cukes == int(count), f"expected {count} cukes, found {world.cukes}"

    @registry.step(r"the kitchen is closed")
    def closed(world):
        raise PendingStep("kitchen not modelled yet")

    @registry.step(r"it is sunday")
    def sunday(world):
        raise SkipStep("not on sundays")

    return registry


def _scenario(*texts: str) -> Scenario:
    steps = tuple(Step(text=text, line=line) for line, text in enumerate(texts, start=4))
    return Scenario(uri="features/belly.yaml", line=3, name="belly", steps=steps)


def _run(*texts: str) -> tuple:
    bus = EventBus()
    events: list[Event] = []
    bus.subscribe(Event, events.append)
    result = Runner(bus, _registry()).run_scenario(_scenario(*texts))
    return result, events


def test_passing_scenario() -> None:
    result, events = _run("I have 5 cukes", "I eat 2 cukes", "I have 3 cukes left")

    assert result.status is Status.PASSED
    assert result.error is None
    assert [type(event) for event in events] == [StepStarted, StepFinished] * 3


def test_failed_step_skips_the_rest() -> None:
    result, events = _run("I have 5 cukes", "I have 1 cukes left", "I eat 1 cukes")

    statuses = [event.result.status for event in events if isinstance(event, StepFinished)]
    assert statuses == [Status.PASSED, Status.FAILED, Status.SKIPPED]
    assert result.status is Status.FAILED
    assert "expected 1 cukes, found 5" in result.error
    assert "AssertionError" in result.traceback


def test_pending_and_skipped_steps() -> None:
    pending, _ = _run("the kitchen is closed", "I have 1 cukes")
    skipped, _ = _run("it is sunday", "I have 1 cukes")

    assert pending.status is Status.PENDING
    assert pending.error == "kitchen not modelled yet"
    assert skipped.status is Status.SKIPPED


def test_undefined_step_suggests_a_snippet_after_a_pending_step() -> None:
    result, events = _run("the kitchen is closed", "I juggle 3 cukes")

    snippets = [event for event in events if isinstance(event, SnippetsSuggested)]
    assert result.status is Status.UNDEFINED
    assert len(snippets) == 1
    assert snippets[0].line == 5
    assert "def i_juggle_cukes(world, arg1):" in snippets[0].snippets[0]


def test_ambiguous_step() -> None:
    registry = _registry()
    registry.add(r"I have \d+ cukes", lambda world: None)
    result = Runner(EventBus(), registry).run_scenario(_scenario("I have 2 cukes"))

    assert result.status is Status.AMBIGUOUS


def test_scenario_without_steps_passes() -> None:
    result, events = _run()

    assert result.status is Status.PASSED
    assert events == []


def test_each_scenario_gets_a_fresh_world() -> None:
    runner = Runner(EventBus(), _registry())

    runner.run_scenario(_scenario("I have 5 cukes"))
    result = runner.run_scenario(_scenario("I eat 1 cukes"))

    assert result.status is Status.FAILED
    assert "AttributeError" in result.error


def test_step_finished_carries_the_matched_definition() -> None:
    _, events = _run("I have 5 cukes", "I have 4 cukes left", "I juggle 3 cukes")

    locations = [event.code_location for event in events if isinstance(event, StepFinished)]
    assert locations[0].endswith(":_registry.<locals>.have")
    assert locations[1].endswith(":_registry.<locals>.left")
    assert locations[2] is None


def test_runner_announces_its_definitions() -> None:
    bus = EventBus()
    defined: list[Event] = []
    bus.subscribe(StepDefined, defined.append)

    Runner(bus, _registry()).announce_definitions()

    assert [event.pattern for event in defined] == [
        r"I have (\d+) cukes",
        r"I eat (\d+) cukes",
        r"I have (\d+) cukes left",
        r"the kitchen is closed",
        r"it is sunday",
    ]
    assert all(event.location.startswith(f"{__name__}:") for event in defined)

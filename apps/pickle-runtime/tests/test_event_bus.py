import threading
from datetime import datetime, timezone

from pickle_runtime.event_bus import EventBus
from pickle_runtime.events import Event, RunFinished, RunStarted, ScenarioStarted
from pickle_runtime.models import Scenario

FIXED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _bus() -> EventBus:
    return EventBus(clock=lambda: FIXED)


def test_handlers_run_in_registration_order() -> None:
    bus = _bus()
    calls: list[str] = []
    bus.subscribe(RunStarted, lambda event: calls.append("first"))
    bus.subscribe(RunStarted, lambda event: calls.append("second"))
    bus.subscribe(RunFinished, lambda event: calls.append("other kind"))

    bus.publish(RunStarted(instant=bus.now()))

    assert calls == ["first", "second"]


def test_base_class_subscription_receives_every_event_after_exact_handlers() -> None:
    bus = _bus()
    calls: list[str] = []
    bus.subscribe(Event, lambda event: calls.append(f"any:{type(event).__name__}"))
    bus.subscribe(RunStarted, lambda event: calls.append("started"))

    bus.publish(RunStarted(instant=bus.now()))
    bus.publish(RunFinished(instant=bus.now()))

    assert calls == ["started", "any:RunStarted", "any:RunFinished"]


def test_failing_handler_does_not_stop_dispatch() -> None:
    bus = _bus()
    calls: list[str] = []

    def broken(event: Event) -> None:
        raise RuntimeError("reporter bug")

    bus.subscribe(RunStarted, broken)
    bus.subscribe(RunStarted, lambda event: calls.append("after"))

    bus.publish(RunStarted(instant=bus.now()))

    assert calls == ["after"]


def test_clock_is_injectable() -> None:
    assert _bus().now() == FIXED


def test_concurrent_publishes_are_never_interleaved() -> None:
    bus = _bus()
    active = 0
    overlaps = 0
    received = 0
    guard = threading.Lock()

    def handler(event: Event) -> None:
        nonlocal active, overlaps, received
        with guard:
            active += 1
            overlaps += active > 1
        threading.Event().wait(0.001)
        with guard:
            active -= 1
            received += 1

    bus.subscribe(ScenarioStarted, handler)
    scenario = Scenario(uri="features/a.yaml", line=1, name="a")

    def publish_many() -> None:
        for _ in range(20):
            bus.publish(ScenarioStarted(instant=bus.now(), scenario=scenario))

    threads = [threading.Thread(target=publish_many) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert received == 80
    assert overlaps == 0

"""Run orchestration: selection, ordering, scheduling and exit status."""

from __future__ import annotations

import itertools
import threading
import traceback
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol, Sequence

import structlog

from .canonical_order import CanonicalEventQueue
from .errors import CompositeExecutionError, RunAborted
from .event_bus import EventBus
from .events import RunFinished, RunStarted, ScenarioFinished, ScenarioStarted, SourceRead
from .exit_status import ExitStatus
from .filters import Filters
from .glue import GlueLoader, StepRegistry
from .models import Feature, Result, RuntimeOptions, Scenario, Status
from .ordering import scenario_order
from .runner import Runner

LOGGER = structlog.get_logger("pickle_runtime")

_POOL_NUMBER = itertools.count(1)


class ExecutionContext(Protocol):
    def run_scenario(self, scenario: Scenario) -> Result: ...


class RunnerSupplier(Protocol):
    def get(self) -> ExecutionContext: ...


class Plugin(Protocol):
    def subscribe_to(self, publisher) -> None: ...


RunnerFactory = Callable[[EventBus], ExecutionContext]


class SingletonRunnerSupplier:
    """Hands out one shared execution context; used when running on one thread."""

    def __init__(self, factory: Callable[[], ExecutionContext]) -> None:
        self._factory = factory
        self._runner: Optional[ExecutionContext] = None

    def get(self) -> ExecutionContext:
        if self._runner is None:
            self._runner = self._factory()
        return self._runner


class WorkerRunnerSupplier:
    """Hands out one execution context per worker thread, created on first use."""

    def __init__(self, factory: Callable[[], ExecutionContext]) -> None:
        self._factory = factory
        self._runners: dict[int, ExecutionContext] = {}
        self._lock = threading.Lock()

    def get(self) -> ExecutionContext:
        worker = threading.get_ident()
        with self._lock:
            runner = self._runners.get(worker)
        if runner is None:
            # Only this worker ever writes its own slot.
            runner = self._factory()
            with self._lock:
                self._runners[worker] = runner
        return runner


@dataclass
class RunOutcome:
    """What a finished run hands back to its caller."""

    results: list[tuple[Scenario, Result]] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)

    @property
    def error(self) -> Optional[BaseException]:
        if not self.errors:
            return None
        if len(self.errors) == 1:
            return self.errors[0]
        return CompositeExecutionError(self.errors)

    def raise_for_errors(self) -> None:
        error = self.error
        if error is not None:
            raise error

    def result_for(self, scenario: Scenario) -> Optional[Result]:
        for candidate, result in self.results:
            if candidate == scenario:
                return result
        return None


class ExecutionScheduler:
    """Dispatches scenarios sequentially or onto a fixed-size worker pool."""

    def __init__(self, bus: EventBus, runners: RunnerSupplier, threads: int = 1) -> None:
        self.bus = bus
        self.runners = runners
        self.threads = threads

    def run(self, scenarios: Sequence[Scenario], features: Iterable[Feature] = ()) -> RunOutcome:
        self.bus.publish(RunStarted(instant=self.bus.now()))
        seen: set[str] = set()
        for feature in features:
            if feature.uri in seen:
                continue
            seen.add(feature.uri)
            self.bus.publish(SourceRead(instant=self.bus.now(), uri=feature.uri, source=feature.source))

        LOGGER.info("run_started", scenarios=len(scenarios), threads=self.threads)
        try:
            if self.threads > 1:
                outcome = self._run_pooled(scenarios)
            else:
                outcome = self._run_sequential(scenarios)
        finally:
            self.bus.publish(RunFinished(instant=self.bus.now()))
        LOGGER.info("run_finished", scenarios=len(outcome.results), errors=len(outcome.errors))
        return outcome

    def _run_sequential(self, scenarios: Sequence[Scenario]) -> RunOutcome:
        outcome = RunOutcome()
        try:
            for scenario in scenarios:
                try:
                    outcome.results.append((scenario, self._execute(scenario)))
                except Exception as exc:
                    outcome.errors.append(exc)
        except KeyboardInterrupt as exc:
            LOGGER.error("run_aborted", completed=len(outcome.results))
            raise RunAborted("Run interrupted") from exc
        return outcome

    def _run_pooled(self, scenarios: Sequence[Scenario]) -> RunOutcome:
        executor = ThreadPoolExecutor(
            max_workers=self.threads,
            thread_name_prefix=f"pickle-runner-{next(_POOL_NUMBER)}-thread",
        )
        submitted: list[tuple[Scenario, Future[Result]]] = [
            (scenario, executor.submit(self._execute, scenario)) for scenario in scenarios
        ]
        executor.shutdown(wait=False)

        outcome = RunOutcome()
        try:
            for scenario, future in submitted:
                try:
                    outcome.results.append((scenario, future.result()))
                except Exception as exc:
                    outcome.errors.append(exc)
        except KeyboardInterrupt as exc:
            # Scenarios already on a worker must finish before RunFinished goes out.
            executor.shutdown(wait=True, cancel_futures=True)
            LOGGER.error("run_aborted", completed=len(outcome.results))
            raise RunAborted("Run interrupted") from exc
        return outcome

    def _execute(self, scenario: Scenario) -> Result:
        """Run one scenario; always publishes a matching ScenarioFinished."""

        self.bus.publish(ScenarioStarted(instant=self.bus.now(), scenario=scenario))
        try:
            result = self.runners.get().run_scenario(scenario)
        except Exception as exc:
            LOGGER.exception(
                "scenario_raised",
                scenario=scenario.location,
                worker=threading.current_thread().name,
            )
            failed = Result(
                status=Status.FAILED,
                error=f"{type(exc).__name__}: {exc}",
                traceback=traceback.format_exc(),
            )
            self.bus.publish(ScenarioFinished(instant=self.bus.now(), scenario=scenario, result=failed))
            raise
        self.bus.publish(ScenarioFinished(instant=self.bus.now(), scenario=scenario, result=result))
        return result


class Runtime:
    """Entry point wiring a run together from its options.

    Configuration problems (bad tag expressions, name patterns or glue modules)
    raise :class:`~pickle_runtime.errors.ConfigurationError` here, before any
    event is published.
    """

    def __init__(
        self,
        options: RuntimeOptions,
        *,
        bus: Optional[EventBus] = None,
        plugins: Sequence[Plugin] = (),
        runner_factory: Optional[RunnerFactory] = None,
    ) -> None:
        self.options = options
        self.bus = bus or EventBus()
        self.filters = Filters(options)
        self.order = scenario_order(options.order, options.seed)

        self._exit_status = ExitStatus(options)
        self._exit_status.subscribe_to(self.bus)
        publisher = CanonicalEventQueue(self.bus) if options.is_multi_threaded else self.bus
        for plugin in plugins:
            plugin.subscribe_to(publisher)

        if runner_factory is None:
            runner_factory = self._default_runner_factory()
        factory = lambda: runner_factory(self.bus)  # noqa: E731
        supplier = (
            WorkerRunnerSupplier(factory) if options.is_multi_threaded else SingletonRunnerSupplier(factory)
        )
        self.scheduler = ExecutionScheduler(self.bus, supplier, options.threads)

    def _default_runner_factory(self) -> RunnerFactory:
        loader = GlueLoader(self.options.glue, self.options.glue_paths)
        loader.validate()

        def build(bus: EventBus) -> Runner:
            runner = Runner(bus, loader.load(StepRegistry()))
            runner.announce_definitions()
            return runner

        return build

    def select(self, features: Iterable[Feature]) -> list[Scenario]:
        """Filter, order and limit the scenarios of ``features``."""

        matching = [
            scenario
            for feature in features
            for scenario in feature.scenarios
            if self.filters.matches(scenario)
        ]
        ordered = self.order(matching)
        return self.filters.limit(ordered)

    def run(self, features: Sequence[Feature]) -> RunOutcome:
        if self.options.seed is not None:
            LOGGER.info("scenario_order", strategy=self.options.order.value, seed=self.options.seed)
        selected = self.select(features)
        return self.scheduler.run(selected, features)

    def exit_status(self) -> int:
        return self._exit_status.exit_status()

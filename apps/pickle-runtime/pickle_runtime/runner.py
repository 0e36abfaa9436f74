"""Scenario execution context: resolves and runs the steps of one scenario at a time."""

from __future__ import annotations

import time
import traceback
from types import SimpleNamespace
from typing import Optional

import structlog

from .event_bus import EventBus
from .events import SnippetsSuggested, StepDefined, StepFinished, StepStarted
from .glue import AmbiguousStep, PendingStep, SkipStep, StepMatch, StepRegistry, UndefinedStep, snippet_for
from .models import Result, Scenario, Status, Step, most_severe

LOGGER = structlog.get_logger("pickle_runtime")


class World(SimpleNamespace):
    """Fresh per-scenario state handed to every step function."""


class Runner:
    """Executes scenarios against its own step registry.

    A runner is owned by a single thread for the lifetime of a run; nothing in
    it is locked.
    """

    def __init__(self, bus: EventBus, registry: StepRegistry) -> None:
        self.bus = bus
        self.registry = registry

    def announce_definitions(self) -> None:
        """Publish a StepDefined event for every definition in the registry."""

        for definition in self.registry.definitions:
            self.bus.publish(
                StepDefined(
                    instant=self.bus.now(),
                    location=definition.location,
                    pattern=definition.pattern.pattern,
                )
            )

    def run_scenario(self, scenario: Scenario) -> Result:
        world = World(scenario=scenario)
        logger = LOGGER.bind(scenario=scenario.location)
        timer = time.perf_counter()
        results: list[Result] = []
        skip_remaining = False

        for index, step in enumerate(scenario.steps):
            self.bus.publish(
                StepStarted(instant=self.bus.now(), scenario=scenario, step_index=index, step=step)
            )
            result, code_location = self._run_step(scenario, step, world, skip=skip_remaining)
            self.bus.publish(
                StepFinished(
                    instant=self.bus.now(),
                    scenario=scenario,
                    step_index=index,
                    step=step,
                    result=result,
                    code_location=code_location,
                )
            )
            results.append(result)
            if result.status is not Status.PASSED:
                skip_remaining = True

        duration_ms = round((time.perf_counter() - timer) * 1000, 3)
        if not results:
            return Result(status=Status.PASSED, duration_ms=duration_ms)
        status = most_severe(result.status for result in results)
        worst = next(r for r in results if r.status is status)
        logger.debug("scenario_executed", status=status.value, duration_ms=duration_ms)
        return Result(
            status=status,
            duration_ms=duration_ms,
            error=worst.error,
            traceback=worst.traceback,
        )

    def _run_step(
        self, scenario: Scenario, step: Step, world: World, *, skip: bool
    ) -> tuple[Result, Optional[str]]:
        try:
            match = self.registry.resolve(step)
        except UndefinedStep as exc:
            self.bus.publish(
                SnippetsSuggested(
                    instant=self.bus.now(),
                    uri=scenario.uri,
                    line=step.line,
                    snippets=(snippet_for(step),),
                )
            )
            return Result(status=Status.UNDEFINED, error=str(exc)), None
        except AmbiguousStep as exc:
            return Result(status=Status.AMBIGUOUS, error=str(exc)), None
        location = match.definition.location
        if skip:
            return Result(status=Status.SKIPPED), location
        return self._execute_step(match, world), location

    @staticmethod
    def _execute_step(match: StepMatch, world: World) -> Result:
        timer = time.perf_counter()
        status = Status.PASSED
        error_text: str | None = None
        tb_text: str | None = None
        try:
            match.invoke(world)
        except PendingStep as exc:
            status = Status.PENDING
            error_text = str(exc) or "TODO: implement me"
        except SkipStep as exc:
            status = Status.SKIPPED
            error_text = str(exc) or None
        except Exception as exc:
            status = Status.FAILED
            error_text = f"{type(exc).__name__}: {exc}"
            tb_text = traceback.format_exc()
        duration_ms = (time.perf_counter() - timer) * 1000
        return Result(
            status=status,
            duration_ms=round(duration_ms, 3),
            error=error_text,
            traceback=tb_text,
        )

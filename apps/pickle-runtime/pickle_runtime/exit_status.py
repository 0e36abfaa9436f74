"""Aggregates finished scenario results into the process exit code."""

from __future__ import annotations

import threading
from typing import Iterable

from .events import ScenarioFinished
from .models import Result, RuntimeOptions, Status, is_ok, least_severe, most_severe

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ExitStatus:
    """Collects every ScenarioFinished result of a run.

    In wip mode the run fails as soon as any scenario passed; otherwise it fails
    when the most severe result is not ok under the configured strictness.
    """

    def __init__(self, options: RuntimeOptions) -> None:
        self._strict = options.strict
        self._wip = options.wip
        self._results: list[Result] = []
        self._lock = threading.Lock()

    def subscribe_to(self, publisher) -> None:
        publisher.subscribe(ScenarioFinished, self._on_scenario_finished)

    def _on_scenario_finished(self, event: ScenarioFinished) -> None:
        with self._lock:
            self._results.append(event.result)

    @property
    def results(self) -> list[Result]:
        with self._lock:
            return list(self._results)

    def exit_status(self) -> int:
        statuses = [result.status for result in self.results]
        return EXIT_SUCCESS if run_succeeded(statuses, strict=self._strict, wip=self._wip) else EXIT_FAILURE


def run_succeeded(statuses: Iterable[Status], *, strict: bool, wip: bool) -> bool:
    """Whether a run with these scenario results counts as a success."""

    statuses = list(statuses)
    if not statuses:
        return True
    if wip:
        return least_severe(statuses) is not Status.PASSED
    return is_ok(most_severe(statuses), strict)

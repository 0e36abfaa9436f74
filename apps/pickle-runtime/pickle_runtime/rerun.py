"""Rerun file plugin: records the locations of scenarios that made the run fail."""

from __future__ import annotations

from pathlib import Path

import structlog

from .events import RunFinished, ScenarioFinished
from .models import is_ok

LOGGER = structlog.get_logger("pickle_runtime")


class RerunFormatter:
    """Writes ``uri:line:line`` entries, one uri per line, when the run finishes.

    The file can be passed back to the CLI as ``@rerun.txt`` to run only the
    failed scenarios again.
    """

    def __init__(self, path: Path, *, strict: bool = False) -> None:
        self.path = path
        self.strict = strict
        self._failed: dict[str, list[int]] = {}

    def subscribe_to(self, publisher) -> None:
        publisher.subscribe(ScenarioFinished, self._on_scenario_finished)
        publisher.subscribe(RunFinished, self._on_run_finished)

    def _on_scenario_finished(self, event: ScenarioFinished) -> None:
        if is_ok(event.result.status, self.strict):
            return
        self._failed.setdefault(event.scenario.uri, []).append(event.scenario.line)

    def _on_run_finished(self, event: RunFinished) -> None:
        lines = [
            ":".join([uri, *(str(line) for line in scenario_lines)])
            for uri, scenario_lines in self._failed.items()
        ]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        LOGGER.info("rerun_file_written", path=str(self.path), entries=len(lines))

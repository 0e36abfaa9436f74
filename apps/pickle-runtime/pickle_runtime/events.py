"""Run lifecycle events published on the event bus."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .models import Result, Scenario, Step


class Event(BaseModel):
    """Base event; subscribing to it receives every event."""

    model_config = ConfigDict(frozen=True)

    instant: datetime


class RunStarted(Event):
    pass


class SourceRead(Event):
    uri: str
    source: str


class StepDefined(Event):
    """A step definition became available to a runner."""

    location: str
    pattern: str


class SnippetsSuggested(Event):
    uri: str
    line: int
    snippets: tuple[str, ...]


class ScenarioEvent(Event):
    scenario: Scenario


class ScenarioStarted(ScenarioEvent):
    pass


class StepStarted(ScenarioEvent):
    step_index: int
    step: Step


class StepFinished(ScenarioEvent):
    step_index: int
    step: Step
    result: Result
    code_location: Optional[str] = None


class ScenarioFinished(ScenarioEvent):
    result: Result


class RunFinished(Event):
    pass

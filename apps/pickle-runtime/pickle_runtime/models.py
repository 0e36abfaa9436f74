"""Scenario, result and run configuration models."""

from __future__ import annotations

import random
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Status(str, Enum):
    """Terminal outcome of a step or a scenario."""

    PASSED = "passed"
    SKIPPED = "skipped"
    PENDING = "pending"
    UNDEFINED = "undefined"
    AMBIGUOUS = "ambiguous"
    FAILED = "failed"


# Best to worst. Aggregation compares positions in this tuple, never enum values.
SEVERITY_ORDER: tuple[Status, ...] = (
    Status.PASSED,
    Status.SKIPPED,
    Status.PENDING,
    Status.UNDEFINED,
    Status.AMBIGUOUS,
    Status.FAILED,
)

_ALWAYS_OK = frozenset({Status.PASSED, Status.SKIPPED})
_OK_WHEN_NOT_STRICT = frozenset({Status.PENDING, Status.UNDEFINED})


def severity(status: Status) -> int:
    return SEVERITY_ORDER.index(status)


def most_severe(statuses: Iterable[Status]) -> Status:
    return max(statuses, key=severity)


def least_severe(statuses: Iterable[Status]) -> Status:
    return min(statuses, key=severity)


def is_ok(status: Status, strict: bool) -> bool:
    """Return whether ``status`` lets the run succeed under the given strictness."""

    if status in _ALWAYS_OK:
        return True
    return not strict and status in _OK_WHEN_NOT_STRICT


class Step(BaseModel):
    """Single executable line of a scenario."""

    model_config = ConfigDict(frozen=True)

    text: str
    line: int
    doc_string: Optional[str] = None
    data_table: Optional[tuple[tuple[str, ...], ...]] = None


class Scenario(BaseModel):
    """Fully resolved test case ("pickle") identified by its source uri and line."""

    model_config = ConfigDict(frozen=True)

    uri: str
    line: int
    name: str
    tags: tuple[str, ...] = ()
    steps: tuple[Step, ...] = ()

    @property
    def location(self) -> str:
        return f"{self.uri}:{self.line}"

    def sort_key(self) -> tuple[str, int]:
        return (self.uri, self.line)


class Feature(BaseModel):
    """One source document and the scenarios derived from it."""

    uri: str
    name: str
    source: str
    scenarios: list[Scenario] = Field(default_factory=list)


class Result(BaseModel):
    """Outcome of a scenario or a step."""

    model_config = ConfigDict(frozen=True)

    status: Status
    duration_ms: float = 0.0
    error: Optional[str] = None
    traceback: Optional[str] = None


class OrderStrategy(str, Enum):
    DECLARATION = "declaration"
    LEXICAL = "lexical"
    REVERSE = "reverse"
    RANDOM = "random"


class RuntimeOptions(BaseModel):
    """Read-only configuration for a single run."""

    model_config = ConfigDict(frozen=True)

    tag_expressions: list[str] = Field(default_factory=list)
    name_patterns: list[str] = Field(default_factory=list)
    line_filters: dict[str, frozenset[int]] = Field(default_factory=dict)
    limit: int = Field(default=0, ge=0)
    threads: int = Field(default=1, ge=1)
    strict: bool = False
    wip: bool = False
    order: OrderStrategy = OrderStrategy.DECLARATION
    seed: Optional[int] = None
    glue: list[str] = Field(default_factory=list)
    glue_paths: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _draw_seed(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("seed") is not None:
            return data
        order = data.get("order")
        order = getattr(order, "value", order)
        if isinstance(order, str) and order.lower() == OrderStrategy.RANDOM.value:
            data = {**data, "seed": random.SystemRandom().randrange(2**32)}
        return data

    @field_validator("tag_expressions", "name_patterns")
    @classmethod
    def _drop_blank(cls, values: list[str]) -> list[str]:
        return [value for value in values if value.strip()]

    @property
    def is_multi_threaded(self) -> bool:
        return self.threads > 1

"""Scenario selection: tag, name and line predicates plus the result limiter."""

from __future__ import annotations

import re
from pathlib import Path
from typing import AbstractSet, Callable, Mapping, Sequence, TypeVar

from .errors import ConfigurationError
from .models import RuntimeOptions, Scenario
from . import tag_expressions

T = TypeVar("T")

Predicate = Callable[[Scenario], bool]

_FEATURE_WITH_LINES = re.compile(r"^(?P<path>.*?)(?P<lines>(?::\d+)*)$")


class TagPredicate:
    """Matches scenarios whose tags satisfy every configured expression."""

    def __init__(self, expressions: Sequence[str]) -> None:
        self.expressions = [tag_expressions.parse(text) for text in expressions]

    def __call__(self, scenario: Scenario) -> bool:
        tags = set(scenario.tags)
        return all(expression.evaluate(tags) for expression in self.expressions)


class NamePredicate:
    """Matches scenarios whose name contains a match for any pattern."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns = []
        for pattern in patterns:
            try:
                self.patterns.append(re.compile(pattern))
            except re.error as exc:
                raise ConfigurationError(f"Invalid name pattern '{pattern}': {exc}") from exc

    def __call__(self, scenario: Scenario) -> bool:
        return any(pattern.search(scenario.name) for pattern in self.patterns)


class LinePredicate:
    """Matches scenarios anchored at a configured line of their uri.

    Scenarios from uris absent from the mapping are always accepted.
    """

    def __init__(self, line_filters: Mapping[str, AbstractSet[int]]) -> None:
        self.line_filters = {uri: frozenset(lines) for uri, lines in line_filters.items()}

    def __call__(self, scenario: Scenario) -> bool:
        lines = self.line_filters.get(scenario.uri)
        if lines is None:
            return True
        return scenario.line in lines


class Filters:
    """AND-composition of the configured predicates, plus the count limiter."""

    def __init__(self, options: RuntimeOptions) -> None:
        self.predicates: list[Predicate] = []
        if options.tag_expressions:
            self.predicates.append(TagPredicate(options.tag_expressions))
        if options.name_patterns:
            self.predicates.append(NamePredicate(options.name_patterns))
        if options.line_filters:
            self.predicates.append(LinePredicate(options.line_filters))
        self.count = options.limit

    def matches(self, scenario: Scenario) -> bool:
        return all(predicate(scenario) for predicate in self.predicates)

    def limit(self, scenarios: list[T]) -> list[T]:
        if self.count < 1 or self.count >= len(scenarios):
            return scenarios
        return scenarios[: self.count]


def parse_feature_with_lines(text: str) -> tuple[str, frozenset[int]]:
    """Split ``features/a.yaml:3:12`` into the uri and its line anchors."""

    match = _FEATURE_WITH_LINES.match(text.strip())
    if match is None or not match.group("path"):
        raise ConfigurationError(f"Invalid feature location '{text}'")
    lines = frozenset(int(part) for part in match.group("lines").split(":") if part)
    return match.group("path"), lines


def read_rerun_file(path: Path) -> list[str]:
    """Return the ``uri:line`` entries of a rerun file."""

    if not path.exists():
        raise ConfigurationError(f"Rerun file not found: {path}")
    return path.read_text(encoding="utf-8").split()

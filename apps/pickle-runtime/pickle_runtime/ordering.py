"""Reproducible reordering of the filtered scenarios."""

from __future__ import annotations

import random
from typing import Callable, Optional

from .models import OrderStrategy, Scenario

ScenarioOrder = Callable[[list[Scenario]], list[Scenario]]


def declaration_order(scenarios: list[Scenario]) -> list[Scenario]:
    return list(scenarios)


def lexical_order(scenarios: list[Scenario]) -> list[Scenario]:
    return sorted(scenarios, key=Scenario.sort_key)


def reverse_order(scenarios: list[Scenario]) -> list[Scenario]:
    return sorted(scenarios, key=Scenario.sort_key, reverse=True)


def random_order(seed: int) -> ScenarioOrder:
    """Seeded shuffle; the result depends only on the scenario set and the seed."""

    def order(scenarios: list[Scenario]) -> list[Scenario]:
        shuffled = lexical_order(scenarios)
        random.Random(seed).shuffle(shuffled)
        return shuffled

    return order


def scenario_order(strategy: OrderStrategy, seed: Optional[int] = None) -> ScenarioOrder:
    if strategy is OrderStrategy.LEXICAL:
        return lexical_order
    if strategy is OrderStrategy.REVERSE:
        return reverse_order
    if strategy is OrderStrategy.RANDOM:
        if seed is None:
            raise ValueError("Random scenario order requires a seed")
        return random_order(seed)
    return declaration_order

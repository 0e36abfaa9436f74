import pytest

from pickle_runtime.models import OrderStrategy, RuntimeOptions, Scenario
from pickle_runtime.ordering import scenario_order

SCENARIOS = [
    Scenario(uri="features/b.yaml", line=4, name="b4"),
    Scenario(uri="features/a.yaml", line=9, name="a9"),
    Scenario(uri="features/c.yaml", line=1, name="c1"),
    Scenario(uri="features/a.yaml", line=3, name="a3"),
    Scenario(uri="features/b.yaml", line=1, name="b1"),
]


def _names(scenarios: list[Scenario]) -> list[str]:
    return [scenario.name for scenario in scenarios]


def test_declaration_order_is_identity() -> None:
    assert scenario_order(OrderStrategy.DECLARATION)(SCENARIOS) == SCENARIOS


def test_lexical_order_sorts_by_uri_then_line() -> None:
    assert _names(scenario_order(OrderStrategy.LEXICAL)(SCENARIOS)) == ["a3", "a9", "b1", "b4", "c1"]


def test_reverse_order() -> None:
    assert _names(scenario_order(OrderStrategy.REVERSE)(SCENARIOS)) == ["c1", "b4", "b1", "a9", "a3"]


def test_random_order_is_reproducible_for_a_seed() -> None:
    first = scenario_order(OrderStrategy.RANDOM, seed=42)(SCENARIOS)
    second = scenario_order(OrderStrategy.RANDOM, seed=42)(list(reversed(SCENARIOS)))

    assert first == second
    assert sorted(_names(first)) == sorted(_names(SCENARIOS))


def test_random_order_differs_between_seeds() -> None:
    orders = {
        tuple(_names(scenario_order(OrderStrategy.RANDOM, seed=seed)(SCENARIOS)))
        for seed in range(10)
    }

    assert len(orders) > 1


def test_ordering_does_not_mutate_input() -> None:
    original = list(SCENARIOS)
    scenario_order(OrderStrategy.RANDOM, seed=7)(SCENARIOS)
    scenario_order(OrderStrategy.LEXICAL)(SCENARIOS)

    assert SCENARIOS == original


def test_random_order_requires_a_seed() -> None:
    with pytest.raises(ValueError):
        scenario_order(OrderStrategy.RANDOM)


def test_options_draw_a_seed_for_random_order() -> None:
    options = RuntimeOptions(order="random")

    assert options.order is OrderStrategy.RANDOM
    assert options.seed is not None
    assert RuntimeOptions(order=OrderStrategy.RANDOM, seed=5).seed == 5
    assert RuntimeOptions().seed is None

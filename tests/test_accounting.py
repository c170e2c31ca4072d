from __future__ import annotations

import math
import random

import pytest
from pydantic import ValidationError

from conftest import line
from container_limits.accounting import (
    contribution,
    current_capacity,
    current_weight,
    total_weight_with_container,
)
from container_limits.rounding import round_half_away


def test_empty_or_missing_contents_weigh_nothing() -> None:
    assert current_weight([]) == 0
    assert current_weight(None) == 0
    assert current_capacity([]) == 0
    assert current_capacity(None) == 0
    assert contribution(None) == (0.0, 0.0)


def test_pounds_are_converted_before_summing() -> None:
    """2.20462 lb is one kilogram once rounded to 2 decimals."""
    items = [line(2.20462, 1, weight_unit="POUND")]
    assert current_weight(items) == 1.0


def test_quantity_multiplies_each_line() -> None:
    items = [line(0.5, 2, quantity=3), line(250, 500, quantity=2, weight_unit="GRAM", volume_unit="ML")]
    assert current_weight(items) == 2.0
    assert current_capacity(items) == 7.0


def test_rounding_happens_once_after_summation() -> None:
    """Three 4 g items would each round to 0.00 kg; the aggregate is 0.01 kg."""
    items = [line(4, 0, weight_unit="GRAM") for _ in range(3)]
    assert current_weight(items) == 0.01


def test_capacity_rounds_to_two_decimals() -> None:
    items = [line(0, 100, volume_unit="CU_IN")]
    assert current_capacity(items) == 1.64


def test_aggregation_ignores_item_order() -> None:
    items = [
        line(0.1, 0.3, quantity=7),
        line(12.34, 1.01, weight_unit="OUNCE", volume_unit="CU_IN"),
        line(333, 250, quantity=3, weight_unit="GRAM", volume_unit="ML"),
        line(1.7, 0.45, quantity=2, weight_unit="POUND"),
        line(0.07, 2.2, quantity=11),
    ]
    expected_weight = current_weight(items)
    expected_capacity = current_capacity(items)

    rng = random.Random(7)
    for _ in range(20):
        shuffled = items[:]
        rng.shuffle(shuffled)
        assert current_weight(shuffled) == expected_weight
        assert current_capacity(shuffled) == expected_capacity


def test_total_weight_includes_the_container() -> None:
    items = [line(1.25, 1, quantity=2)]
    assert total_weight_with_container(items, 2.5) == 5.0
    assert total_weight_with_container([], 3.1) == 3.1


def test_contribution_is_unrounded() -> None:
    weight, volume = contribution([line(4, 3, weight_unit="GRAM", volume_unit="ML")])
    assert weight == pytest.approx(0.004)
    assert volume == pytest.approx(0.003)


@pytest.mark.parametrize(
    "value, decimals, expected",
    [
        (2.675, 2, 2.68),
        (-2.675, 2, -2.68),
        (0.05, 1, 0.1),
        (12.25, 1, 12.3),
        (2.5, 0, 3.0),
        (1.23456, 3, 1.235),
        (-0.001, 2, 0.0),
    ],
)
def test_round_half_away_from_zero(value: float, decimals: int, expected: float) -> None:
    assert round_half_away(value, decimals) == expected


@pytest.mark.parametrize(
    "value, decimals, expected",
    [
        (1e27, 2, 1e27),
        (1e38, 1, 1e38),
        (-1.5e300, 2, -1.5e300),
        (1e-30, 2, 0.0),
        (123456789012345678901234567890.0, 1, 123456789012345678901234567890.0),
    ],
)
def test_rounding_keeps_large_and_tiny_magnitudes(value: float, decimals: int, expected: float) -> None:
    assert round_half_away(value, decimals) == expected


def test_rounding_passes_non_finite_values_through() -> None:
    assert round_half_away(math.inf, 2) == math.inf
    assert round_half_away(-math.inf, 1) == -math.inf
    assert math.isnan(round_half_away(math.nan, 2))


def test_infinite_measurements_are_rejected_by_the_model() -> None:
    with pytest.raises(ValidationError):
        line(math.inf, 1)
    with pytest.raises(ValidationError):
        line(1, math.nan)


def test_totals_beyond_float_range_saturate() -> None:
    items = [line(1e308, 1), line(1e308, 1)]
    assert current_weight(items) == math.inf
    assert current_capacity(items) == 2.0

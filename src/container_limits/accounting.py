from __future__ import annotations

import math
from typing import Iterable, Optional

from container_limits.models import ContainedItem
from container_limits.rounding import round2
from container_limits.units import convert_volume, convert_weight


def exact_sum(values: Iterable[float]) -> float:
    """
    Order-independent float sum.

    A finite total too large for a float saturates to infinity instead of raising.
    """
    try:
        return math.fsum(values)
    except OverflowError:
        return math.inf


def item_weight_kg(contained: ContainedItem) -> float:
    """Canonical weight of one line: per-unit kg times quantity, unrounded."""
    item = contained.item
    return convert_weight(item.weight, item.weight_unit) * contained.quantity


def item_volume_l(contained: ContainedItem) -> float:
    item = contained.item
    return convert_volume(item.volume, item.volume_unit) * contained.quantity


def contribution(items: Optional[Iterable[ContainedItem]]) -> tuple[float, float]:
    """
    Unrounded (kg, liters) of a set of contained items.

    The total does not depend on item order.
    """
    if not items:
        return 0.0, 0.0
    items = list(items)
    weight = exact_sum(item_weight_kg(c) for c in items)
    volume = exact_sum(item_volume_l(c) for c in items)
    return weight, volume


def current_weight(items: Optional[Iterable[ContainedItem]]) -> float:
    """
    Total weight of the contents in kg.

    Rounded to 2 decimals once, after summation. Empty or missing lists weigh 0.
    """
    if not items:
        return 0
    return round2(exact_sum(item_weight_kg(c) for c in items))


def current_capacity(items: Optional[Iterable[ContainedItem]]) -> float:
    """Total volume of the contents in liters, rounded to 2 decimals after summation."""
    if not items:
        return 0
    return round2(exact_sum(item_volume_l(c) for c in items))


def total_weight_with_container(items: Optional[Iterable[ContainedItem]], tare_weight: float) -> float:
    return round2(current_weight(items) + tare_weight)

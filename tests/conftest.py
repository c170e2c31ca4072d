from __future__ import annotations

import pytest

from container_limits.models import ContainedItem, Container, ContainerKind, Item
from container_limits.store import InMemoryStore


def line(weight: float, volume: float, quantity: int = 1, item_id: str | None = None,
         weight_unit: str = "KILOGRAM", volume_unit: str = "LITER") -> ContainedItem:
    return ContainedItem(
        quantity=quantity,
        item=Item(id=item_id, weight=weight, weight_unit=weight_unit, volume=volume, volume_unit=volume_unit),
    )


@pytest.fixture
def store() -> InMemoryStore:
    """Carry-on bag holding 18 of 20 L and 7.5 of 10 kg (tare included), plus an item catalog."""
    shirt = Item(id="shirt", weight=0.2, volume=1.0)
    boots = Item(id="boots", weight=1.5, volume=3.0)
    laptop = Item(id="laptop", weight=2.0, volume=2.0)
    brick = Item(id="brick", weight=10.0, volume=1.0)
    bag = Container(
        id="carry-on",
        kind=ContainerKind.BAG,
        max_capacity=20,
        max_weight=10,
        tare_weight=2.0,
        contents=(
            ContainedItem(quantity=10, item=Item(id="book", weight=0.4, volume=1.5)),
            ContainedItem(quantity=1, item=boots),
        ),
    )
    return InMemoryStore(containers=[bag], items=[shirt, boots, laptop, brick])

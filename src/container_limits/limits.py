# src/container_limits/limits.py
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldMessages(BaseModel):
    """User-facing messages attached to a numeric field."""

    model_config = ConfigDict(frozen=True)

    number: str
    positive: str
    gte: str
    lte: str


class NumberFieldConfig(BaseModel):
    """Domain bounds and precision for one (entity, metric) pair."""

    model_config = ConfigDict(frozen=True)

    gte: float = Field(description="Inclusive lower bound")
    lte: float = Field(description="Inclusive upper bound")
    decimals: int = Field(ge=0, description="Decimal places kept after normalization")
    messages: FieldMessages

    @model_validator(mode="after")
    def _bounds_ordered(self) -> "NumberFieldConfig":
        if self.gte > self.lte:
            raise ValueError(f"gte ({self.gte}) must be <= lte ({self.lte})")
        return self

    @property
    def step(self) -> float:
        if self.decimals == 0:
            return 1.0
        return 1 / 10 ** self.decimals


ConfigTable = Mapping[str, Mapping[str, NumberFieldConfig]]


def _cfg(low: float, high: float, decimals: int, **messages: str) -> NumberFieldConfig:
    return NumberFieldConfig(gte=low, lte=high, decimals=decimals, messages=FieldMessages(**messages))


_NOT_A_NUMBER = "That doesn't seem like a valid number, double-check your units."

NUMBER_CONFIG: ConfigTable = MappingProxyType({
    "bag": MappingProxyType({
        "capacity": _cfg(
            1, 150, 1,
            number=_NOT_A_NUMBER,
            positive="Bag capacity must be above zero.",
            gte="That bag's capacity seems a bit small.",
            lte="That bag capacity is larger than any bag we know of.",
        ),
        "weight": _cfg(
            1, 50, 2,
            number=_NOT_A_NUMBER,
            positive="Bag weight must be more than zero.",
            gte="That bag weight seems too light, check the units.",
            lte="Most airlines cap checked bags well below that weight.",
        ),
    }),
    "suitcase": MappingProxyType({
        "capacity": _cfg(
            10, 200, 1,
            number=_NOT_A_NUMBER,
            positive="Suitcase capacity must be above zero.",
            gte="That suitcase is too small to be practical.",
            lte="That suitcase capacity is unrealistically large.",
        ),
        "weight": _cfg(
            5, 70, 2,
            number=_NOT_A_NUMBER,
            positive="Suitcase weight must be more than zero.",
            gte="That suitcase weight looks unusually light, check the units.",
            lte="That is too heavy for most airlines.",
        ),
    }),
    "item": MappingProxyType({
        "volume": _cfg(
            0.001, 1_000, 3,
            number=_NOT_A_NUMBER,
            positive="Item volume must be positive.",
            gte="That item's volume seems tiny, check the decimal point.",
            lte="That volume is unusually large for a single item.",
        ),
        "weight": _cfg(
            0.001, 100, 3,
            number=_NOT_A_NUMBER,
            positive="Item weight must be positive.",
            gte="That item seems very light.",
            lte="That is quite heavy for a single item.",
        ),
        "quantity": _cfg(
            1, 10_000, 0,
            number=_NOT_A_NUMBER,
            positive="Quantity must be at least one.",
            gte="You need at least one of that item.",
            lte="That is a very large number of items.",
        ),
    }),
})


def get_field_config(entity: str, metric: str, table: ConfigTable = NUMBER_CONFIG) -> NumberFieldConfig:
    key = entity.strip().lower()
    if key not in table:
        raise ValueError(f"Unknown entity '{entity}'. Valid: {sorted(table.keys())}")
    metrics = table[key]
    metric_key = metric.strip().lower()
    if metric_key not in metrics:
        raise ValueError(f"Unknown metric '{metric}' for {key}. Valid: {sorted(metrics.keys())}")
    return metrics[metric_key]

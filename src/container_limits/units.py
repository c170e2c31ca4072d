"""Unit conversion into canonical units (kilogram for weight, liter for volume)."""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class WeightUnit(str, Enum):
    GRAM = "GRAM"
    KILOGRAM = "KILOGRAM"
    POUND = "POUND"
    OUNCE = "OUNCE"


class VolumeUnit(str, Enum):
    ML = "ML"
    LITER = "LITER"
    CU_CM = "CU_CM"
    CU_IN = "CU_IN"


# Multipliers into kilograms / liters.
KILOGRAMS_PER_UNIT: Mapping[str, float] = MappingProxyType({
    "KILOGRAM": 1.0,
    "GRAM": 1.0 / 1000.0,
    "POUND": 0.453592,
    "OUNCE": 0.0283495,
})

LITERS_PER_UNIT: Mapping[str, float] = MappingProxyType({
    "LITER": 1.0,
    "ML": 1.0 / 1000.0,
    "CU_CM": 1.0 / 1000.0,
    "CU_IN": 0.0163871,
})


def _unit_key(unit: str | Enum | None) -> str | None:
    if isinstance(unit, Enum):
        return str(unit.value)
    return unit


def convert_weight(value: float, unit: str | WeightUnit | None) -> float:
    """
    Convert a weight into kilograms.

    Unsupported units are treated as kilograms already, so the converter never
    raises for a numeric value.

    Examples:
        convert_weight(1000, "GRAM")  -> 1.0
        convert_weight(2.2, "POUND")  -> ~0.9979
    """
    key = _unit_key(unit)
    factor = KILOGRAMS_PER_UNIT.get(key) if key is not None else None
    if factor is None:
        logger.debug(f"Unknown weight unit {unit!r}, assuming kilograms")
        return float(value)
    return float(value) * factor


def convert_volume(value: float, unit: str | VolumeUnit | None) -> float:
    """
    Convert a volume into liters.

    Unsupported units are treated as liters already.
    """
    key = _unit_key(unit)
    factor = LITERS_PER_UNIT.get(key) if key is not None else None
    if factor is None:
        logger.debug(f"Unknown volume unit {unit!r}, assuming liters")
        return float(value)
    return float(value) * factor

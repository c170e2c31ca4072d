"""
Numeric range filters keyed by (entity, metric).

Both the persisted search filters and the interactive filter state read their
bounds and precision from the same NUMBER_CONFIG table, so a range accepted by
one is accepted by the other.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from container_limits.errors import RangeValidationError
from container_limits.limits import NUMBER_CONFIG, ConfigTable, NumberFieldConfig, get_field_config
from container_limits.models import NumberRangeValue
from container_limits.rounding import round_half_away
from container_limits.units import VolumeUnit, WeightUnit

logger = logging.getLogger(__name__)

ALLOWED_KEYS = frozenset({"min", "max"})

RangeInput = Union[Mapping[str, Any], NumberRangeValue, None]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


class RangeFilterValidator:
    """Validates and normalizes `{min, max}` input for one (entity, metric)."""

    def __init__(self, entity: str, metric: str, table: ConfigTable = NUMBER_CONFIG):
        self.entity = entity
        self.metric = metric
        self.config: NumberFieldConfig = get_field_config(entity, metric, table)

    def clamp(self, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return min(max(value, self.config.gte), self.config.lte)

    def normalize(self, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return round_half_away(value, self.config.decimals)

    def parse(self, raw: RangeInput, clamp: bool = True) -> NumberRangeValue:
        """
        Validate a range and return it clamped and rounded.

        Rules, in order: only `min`/`max` keys with numeric values; at least one
        bound; `min <= max`; each bound clamped into [gte, lte] (rejected
        instead when `clamp` is False); each bound rounded to the configured
        decimals.

        Raises:
            RangeValidationError: with every issue found
        """
        if isinstance(raw, NumberRangeValue):
            raw = raw.model_dump(exclude_none=True)
        if not isinstance(raw, Mapping):
            raise RangeValidationError([{"field": None, "message": "A range must be an object with min and/or max."}])

        issues: list[dict[str, Any]] = []
        messages = self.config.messages

        for key in sorted(set(raw) - ALLOWED_KEYS, key=str):
            issues.append({"field": key, "message": f"Unexpected field '{key}' in range filter."})

        bounds: dict[str, Optional[float]] = {}
        for key in ("min", "max"):
            value = raw.get(key)
            if value is not None and not _is_number(value):
                issues.append({"field": key, "message": messages.number})
                value = None
            bounds[key] = float(value) if value is not None else None

        low, high = bounds["min"], bounds["max"]

        if issues:
            raise RangeValidationError(issues)

        if low is None and high is None:
            raise RangeValidationError([{
                "field": None,
                "message": "Add at least a minimum or a maximum, a range with both blank is not a filter.",
            }])

        if low is not None and high is not None and low > high:
            raise RangeValidationError([{
                "field": "max",
                "message": "The minimum is higher than the maximum.",
            }])

        if not clamp:
            for key, value in (("min", low), ("max", high)):
                if value is None:
                    continue
                if value < self.config.gte:
                    issues.append({"field": key, "message": messages.gte})
                elif value > self.config.lte:
                    issues.append({"field": key, "message": messages.lte})
            if issues:
                raise RangeValidationError(issues)

        return NumberRangeValue(
            min=self.normalize(self.clamp(low)),
            max=self.normalize(self.clamp(high)),
        )


def build_validators(table: ConfigTable = NUMBER_CONFIG) -> dict[tuple[str, str], RangeFilterValidator]:
    """One validator per (entity, metric) in the table."""
    return {
        (entity, metric): RangeFilterValidator(entity, metric, table)
        for entity, metrics in table.items()
        for metric in metrics
    }


class InteractiveRangeFilter:
    """
    Editable range state for a form or slider.

    Mirrors an external value, re-validates every edit, and emits the
    clamped, rounded range through `on_change`. Edits that would put min above
    max are ignored and the previous value is kept. `None` is emitted only when
    both bounds have been cleared.
    """

    def __init__(
        self,
        entity: str,
        metric: str,
        on_change: Callable[[Optional[NumberRangeValue]], None],
        value: Optional[NumberRangeValue] = None,
        table: ConfigTable = NUMBER_CONFIG,
    ):
        self.validator = RangeFilterValidator(entity, metric, table)
        self.on_change = on_change
        self.min: Optional[float] = None
        self.max: Optional[float] = None

        # unit selection is display-only for item weight / volume
        self.units: tuple[str, ...] = ()
        if entity == "item" and metric == "weight":
            self.units = tuple(u.value for u in WeightUnit)
        elif entity == "item" and metric == "volume":
            self.units = tuple(u.value for u in VolumeUnit)
        self.unit: Optional[str] = self.units[0] if self.units else None

        self.sync(value)

    @property
    def config(self) -> NumberFieldConfig:
        return self.validator.config

    @property
    def has_unit(self) -> bool:
        return bool(self.units)

    @property
    def is_integer(self) -> bool:
        return self.config.decimals == 0

    @property
    def step(self) -> float:
        return self.config.step

    @property
    def safe_min(self) -> float:
        return self.min if self.min is not None else self.config.gte

    @property
    def safe_max(self) -> float:
        return self.max if self.max is not None else self.config.lte

    def sync(self, value: Optional[NumberRangeValue]) -> None:
        """Take over the externally controlled value without emitting."""
        self.min = value.min if value is not None else None
        self.max = value.max if value is not None else None

    def set_unit(self, unit: str) -> None:
        if unit not in self.units:
            raise ValueError(f"Unit {unit!r} not available for {self.validator.entity}.{self.validator.metric}")
        self.unit = unit

    @staticmethod
    def _coerce(raw: Union[str, float, None]) -> tuple[bool, Optional[float]]:
        """(ok, value) for an input field; empty clears the bound, garbage is not ok."""
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            return True, None
        if isinstance(raw, bool):
            return False, None
        try:
            value = float(raw)
        except (TypeError, ValueError, OverflowError):
            return False, None
        if not math.isfinite(value):
            return False, None
        return True, value

    def set_min(self, raw: Union[str, float, None]) -> bool:
        """Edit the minimum field. Returns False when the edit was ignored."""
        ok, value = self._coerce(raw)
        if not ok:
            return False
        if value is not None and self.max is not None and value > self.max:
            logger.debug(f"Ignoring min={value} above max={self.max}")
            return False
        self.min = value
        self._emit(self.min, self.max)
        return True

    def set_max(self, raw: Union[str, float, None]) -> bool:
        """Edit the maximum field. Returns False when the edit was ignored."""
        ok, value = self._coerce(raw)
        if not ok:
            return False
        if value is not None and self.min is not None and self.min > value:
            logger.debug(f"Ignoring max={value} below min={self.min}")
            return False
        self.max = value
        self._emit(self.min, self.max)
        return True

    def set_range(self, value: Union[float, Sequence[float]]) -> bool:
        """Slider update; only a (min, max) pair in order is accepted."""
        if isinstance(value, str) or not isinstance(value, Sequence) or len(value) != 2:
            return False
        low, high = value
        if not (_is_number(low) and _is_number(high)) or low > high:
            return False
        self.min, self.max = float(low), float(high)
        self._emit(self.min, self.max)
        return True

    def clear(self) -> None:
        self.min = None
        self.max = None
        self._emit(None, None)

    def _emit(self, low: Optional[float], high: Optional[float]) -> None:
        v = self.validator
        low = v.normalize(v.clamp(low))
        high = v.normalize(v.clamp(high))

        if low is not None and high is not None and low > high:
            return

        if low is None and high is None:
            self.on_change(None)
            return

        self.on_change(NumberRangeValue(min=low, max=high))

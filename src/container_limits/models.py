from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from container_limits.units import VolumeUnit, WeightUnit


Metric = Literal["weight", "capacity"]


class ContainerKind(str, Enum):
    BAG = "bag"
    SUITCASE = "suitcase"


class ContainerStatus(str, Enum):
    OK = "ok"
    FULL = "full"
    EMPTY = "empty"
    OVERWEIGHT = "overweight"
    OVER_CAPACITY = "over_capacity"


class StatusReason(str, Enum):
    EMPTY = "empty"
    WEIGHT_OVER_LIMIT = "weight_over_limit"
    WEIGHT_NEAR_LIMIT = "weight_near_limit"
    CAPACITY_OVER_LIMIT = "capacity_over_limit"
    CAPACITY_NEAR_LIMIT = "capacity_near_limit"


class Item(BaseModel):
    """Measured item, in whatever units it was recorded with."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: Optional[str] = Field(default=None, description="Identifier of the item record")
    weight: float = Field(ge=0, description="Weight of a single unit")
    weight_unit: WeightUnit | str = Field(default=WeightUnit.KILOGRAM, description="Unit of weight")
    volume: float = Field(ge=0, description="Volume of a single unit")
    volume_unit: VolumeUnit | str = Field(default=VolumeUnit.LITER, description="Unit of volume")


class ContainedItem(BaseModel):
    """Snapshot of an item and its quantity inside a container, used only for computation."""

    model_config = ConfigDict(frozen=True)

    quantity: int = Field(default=1, gt=0, description="Number of units")
    item: Item


class Container(BaseModel):
    """Bag or suitcase with declared maximums. Capacity in liters, weights in kg."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str = Field(description="Unique identifier for the container")
    kind: ContainerKind = Field(default=ContainerKind.BAG)
    max_capacity: float = Field(description="Maximum capacity in liters")
    max_weight: float = Field(description="Maximum total weight in kg, container included")
    tare_weight: float = Field(default=0.0, ge=0, description="Weight of the empty container in kg")
    contents: tuple[ContainedItem, ...] = Field(default_factory=tuple)


class ContainerMetrics(BaseModel):
    """Derived view of a container. Recomputed on every read, never stored."""

    current_weight: float
    current_capacity: float
    remaining_weight: float
    remaining_capacity: float
    weight_percentage: float
    capacity_percentage: float
    is_overweight: bool
    is_over_capacity: bool
    is_full: bool
    item_count: int
    status: ContainerStatus = ContainerStatus.OK
    reasons: list[StatusReason] = Field(default_factory=list)


class NumberRangeValue(BaseModel):
    """Optional numeric boundaries of a range filter."""

    min: Optional[float] = None
    max: Optional[float] = None

    def is_active(self) -> bool:
        return self.min is not None or self.max is not None


class AdmissionDecision(BaseModel):
    """Outcome of an admission check, with the metrics the container would have."""

    ok: bool
    reason: Optional[str] = None
    metric: Optional[Metric] = None
    metrics: ContainerMetrics

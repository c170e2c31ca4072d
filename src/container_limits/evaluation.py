"""Headroom, utilization and status of a container."""

from __future__ import annotations

from typing import Any

from container_limits.accounting import current_capacity, total_weight_with_container
from container_limits.errors import FieldValidationError
from container_limits.limits import NUMBER_CONFIG, ConfigTable, get_field_config
from container_limits.models import (
    ContainedItem,
    Container,
    ContainerMetrics,
    ContainerStatus,
    Item,
    StatusReason,
)
from container_limits.rounding import round1, round2
from container_limits.units import convert_volume, convert_weight

NEAR_LIMIT_PERCENT = 95.0


def remaining_weight(current: float, maximum: float) -> float:
    """
    Weight headroom in kg, never negative.

    A missing or non-positive maximum means no headroom at all.
    """
    if not maximum or maximum <= 0:
        return 0
    return max(round2(maximum - current), 0)


def remaining_capacity(current: float, maximum: float) -> float:
    if not maximum or maximum <= 0:
        return 0
    return max(round2(maximum - current), 0)


def weight_percentage(current: float, maximum: float) -> float:
    """
    Percentage of the maximum weight in use, 1 decimal.

    Values above 100 are returned as-is: callers tell "at limit" from
    "over limit" with it.
    """
    if not maximum or maximum <= 0:
        return 0
    if current < 0:
        return 0
    return round1(current / maximum * 100)


def capacity_percentage(current: float, maximum: float) -> float:
    if not maximum or maximum <= 0:
        return 0
    if current < 0:
        return 0
    return round1(current / maximum * 100)


def is_overweight(current: float, max_weight: float) -> bool:
    return current > max_weight


def is_over_capacity(current: float, max_capacity: float) -> bool:
    return current > max_capacity


def is_full(overweight: bool, over_capacity: bool) -> bool:
    return overweight or over_capacity


def classify(
    item_count: int,
    overweight: bool,
    over_capacity: bool,
    weight_pct: float,
    capacity_pct: float,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> tuple[ContainerStatus, list[StatusReason]]:
    """
    Status of a container and the reasons behind it.

    An empty container reports only EMPTY. Otherwise each metric contributes
    either an over-limit or a near-limit reason. Status precedence is
    OVERWEIGHT, OVER_CAPACITY, FULL (near a limit), EMPTY, OK.
    """
    reasons: list[StatusReason] = []

    if item_count == 0:
        reasons.append(StatusReason.EMPTY)
    else:
        if overweight:
            reasons.append(StatusReason.WEIGHT_OVER_LIMIT)
        elif weight_pct >= near_limit:
            reasons.append(StatusReason.WEIGHT_NEAR_LIMIT)

        if over_capacity:
            reasons.append(StatusReason.CAPACITY_OVER_LIMIT)
        elif capacity_pct >= near_limit:
            reasons.append(StatusReason.CAPACITY_NEAR_LIMIT)

    if StatusReason.WEIGHT_OVER_LIMIT in reasons:
        status = ContainerStatus.OVERWEIGHT
    elif StatusReason.CAPACITY_OVER_LIMIT in reasons:
        status = ContainerStatus.OVER_CAPACITY
    elif StatusReason.WEIGHT_NEAR_LIMIT in reasons or StatusReason.CAPACITY_NEAR_LIMIT in reasons:
        status = ContainerStatus.FULL
    elif StatusReason.EMPTY in reasons:
        status = ContainerStatus.EMPTY
    else:
        status = ContainerStatus.OK

    return status, reasons


def evaluate(
    weight: float,
    capacity: float,
    max_weight: float,
    max_capacity: float,
    item_count: int,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> ContainerMetrics:
    """Derive metrics from already-aggregated totals (weight includes the container itself)."""
    overweight = is_overweight(weight, max_weight)
    over_capacity = is_over_capacity(capacity, max_capacity)
    weight_pct = weight_percentage(weight, max_weight)
    capacity_pct = capacity_percentage(capacity, max_capacity)
    status, reasons = classify(item_count, overweight, over_capacity, weight_pct, capacity_pct, near_limit)

    return ContainerMetrics(
        current_weight=weight,
        current_capacity=capacity,
        remaining_weight=remaining_weight(weight, max_weight),
        remaining_capacity=remaining_capacity(capacity, max_capacity),
        weight_percentage=weight_pct,
        capacity_percentage=capacity_pct,
        is_overweight=overweight,
        is_over_capacity=over_capacity,
        is_full=is_full(overweight, over_capacity),
        item_count=item_count,
        status=status,
        reasons=reasons,
    )


def build_metrics(container: Container, near_limit: float = NEAR_LIMIT_PERCENT) -> ContainerMetrics:
    """Fresh metrics for the persisted state of a container."""
    return evaluate(
        weight=total_weight_with_container(container.contents, container.tare_weight),
        capacity=current_capacity(container.contents),
        max_weight=container.max_weight,
        max_capacity=container.max_capacity,
        item_count=len(container.contents),
        near_limit=near_limit,
    )


def field_issues(
    entity: str,
    metric: str,
    value: float,
    field: str,
    table: ConfigTable = NUMBER_CONFIG,
) -> list[dict[str, Any]]:
    """Issues of one measurement against its domain bounds; empty when it is within them."""
    config = get_field_config(entity, metric, table)
    messages = config.messages
    if value <= 0:
        return [{"field": field, "message": messages.positive}]
    if value < config.gte:
        return [{"field": field, "message": messages.gte}]
    if value > config.lte:
        return [{"field": field, "message": messages.lte}]
    return []


def validate_item(item: Item, field: str = "item", table: ConfigTable = NUMBER_CONFIG) -> Item:
    """
    Check an item's canonical weight and volume against the item bounds.

    Raises:
        FieldValidationError: with every measurement out of range
    """
    issues = field_issues("item", "weight", convert_weight(item.weight, item.weight_unit), f"{field}.weight", table)
    issues += field_issues("item", "volume", convert_volume(item.volume, item.volume_unit), f"{field}.volume", table)
    if issues:
        raise FieldValidationError(issues)
    return item


def validate_line(line: ContainedItem, field: str = "item", table: ConfigTable = NUMBER_CONFIG) -> ContainedItem:
    """Item bounds plus the quantity bounds for one contained line."""
    issues = field_issues("item", "quantity", line.quantity, f"{field}.quantity", table)
    try:
        validate_item(line.item, field, table)
    except FieldValidationError as e:
        issues += e.issues
    if issues:
        raise FieldValidationError(issues)
    return line


def validate_container(container: Container, table: ConfigTable = NUMBER_CONFIG) -> Container:
    """
    Check declared maximums against the bounds for the container's kind, and
    every contained line against the item bounds.

    Raises:
        FieldValidationError: with every issue found
    """
    kind = container.kind.value
    issues = field_issues(kind, "capacity", container.max_capacity, "max_capacity", table)
    issues += field_issues(kind, "weight", container.max_weight, "max_weight", table)
    for i, line in enumerate(container.contents):
        try:
            validate_line(line, f"contents[{i}]", table)
        except FieldValidationError as e:
            issues += e.issues
    if issues:
        raise FieldValidationError(issues)
    return container

"""
Admission control: may a container take these items without breaching its limits?

The check runs on the prospective state (existing contents plus the whole
candidate set) before anything is written. Persisting an accepted batch is the
store's job; `admit_items` wires both together inside one per-container
transaction so that competing admissions cannot both pass a stale check.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Sequence, Union

from container_limits.accounting import contribution, current_capacity, exact_sum, total_weight_with_container
from container_limits.errors import AdmissionRejected, CapacityViolation, WeightViolation
from container_limits.evaluation import NEAR_LIMIT_PERCENT, build_metrics, evaluate
from container_limits.models import AdmissionDecision, ContainedItem, Container, ContainerMetrics
from container_limits.rounding import round2
from container_limits.store import ContainerStore

logger = logging.getLogger(__name__)

Candidate = Union[ContainedItem, Iterable[ContainedItem]]


class AdmissionRule(str, Enum):
    """How the two limits combine into a rejection."""

    EITHER = "either"  # reject when weight OR capacity would be exceeded
    BOTH = "both"  # legacy bag behaviour: reject only when both would be exceeded


def _as_batch(candidate: Candidate) -> list[ContainedItem]:
    if isinstance(candidate, ContainedItem):
        return [candidate]
    return list(candidate)


def _line_count(existing: Sequence[ContainedItem], batch: Sequence[ContainedItem]) -> int:
    """Distinct lines after the batch is merged into the existing contents."""
    ids = {c.item.id for c in existing if c.item.id is not None}
    anonymous = sum(1 for c in existing if c.item.id is None)
    for c in batch:
        if c.item.id is None:
            anonymous += 1
        else:
            ids.add(c.item.id)
    return len(ids) + anonymous


def can_admit(
    container: Container,
    candidate: Candidate,
    rule: AdmissionRule = AdmissionRule.EITHER,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> AdmissionDecision:
    """
    Decide whether `candidate` (one contained item or a batch) fits into `container`.

    Args:
        container: Snapshot of the container, contents included
        candidate: A ContainedItem or an iterable of them, judged as one unit
        rule: EITHER rejects when any single limit is exceeded, BOTH only when both are
        near_limit: Percentage from which the would-be status reports a near-limit reason

    Returns:
        AdmissionDecision with ok, the offending metric when rejected, and the
        metrics the container would have after the write.
    """
    batch = _as_batch(candidate)
    if not batch:
        return AdmissionDecision(ok=True, metrics=build_metrics(container, near_limit))

    added_weight, added_volume = contribution(batch)
    current_weight = total_weight_with_container(container.contents, container.tare_weight)
    prospective_weight = round2(exact_sum([current_weight, added_weight]))
    prospective_capacity = round2(exact_sum([current_capacity(container.contents), added_volume]))

    metrics = evaluate(
        weight=prospective_weight,
        capacity=prospective_capacity,
        max_weight=container.max_weight,
        max_capacity=container.max_capacity,
        item_count=_line_count(container.contents, batch),
        near_limit=near_limit,
    )

    overweight = metrics.is_overweight
    over_capacity = metrics.is_over_capacity
    if rule == AdmissionRule.BOTH:
        rejected = overweight and over_capacity
    else:
        rejected = overweight or over_capacity

    if not rejected:
        return AdmissionDecision(ok=True, metrics=metrics)

    if overweight:
        return AdmissionDecision(
            ok=False,
            metric="weight",
            reason=(
                f"Adding these items would bring {container.id} to {prospective_weight} kg, "
                f"over its {container.max_weight} kg limit"
            ),
            metrics=metrics,
        )
    return AdmissionDecision(
        ok=False,
        metric="capacity",
        reason=(
            f"Adding these items would fill {container.id} to {prospective_capacity} L, "
            f"over its {container.max_capacity} L capacity"
        ),
        metrics=metrics,
    )


def ensure_admissible(
    container: Container,
    candidate: Candidate,
    rule: AdmissionRule = AdmissionRule.EITHER,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> AdmissionDecision:
    """Like can_admit, but raises WeightViolation / CapacityViolation on rejection."""
    decision = can_admit(container, candidate, rule=rule, near_limit=near_limit)
    if decision.ok:
        return decision
    if decision.metric == "weight":
        raise WeightViolation(decision)
    if decision.metric == "capacity":
        raise CapacityViolation(decision)
    raise AdmissionRejected(decision)


def check_items(
    store: ContainerStore,
    container_id: str,
    lines: Sequence[tuple[str, int]],
    rule: AdmissionRule = AdmissionRule.EITHER,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> AdmissionDecision:
    """Dry run of admit_items: resolve (item_id, quantity) lines and decide, without writing."""
    container = store.get_container(container_id)
    batch = [ContainedItem(quantity=qty, item=store.get_item(item_id)) for item_id, qty in lines]
    return can_admit(container, batch, rule=rule, near_limit=near_limit)


def admit_items(
    store: ContainerStore,
    container_id: str,
    lines: Sequence[tuple[str, int]],
    rule: AdmissionRule = AdmissionRule.EITHER,
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> ContainerMetrics:
    """
    Add (item_id, quantity) lines to a container if the whole batch fits.

    Runs inside the store's per-container transaction: the container is
    re-read under the lock, judged, and written only on acceptance. A rejected
    batch leaves the persisted contents untouched.

    Raises:
        WeightViolation / CapacityViolation: the batch does not fit
        ContainerNotFound / ItemNotFound: unknown identifiers
    """
    with store.transaction(container_id) as session:
        container = session.load_container()
        batch = [ContainedItem(quantity=qty, item=session.load_item(item_id)) for item_id, qty in lines]
        try:
            ensure_admissible(container, batch, rule=rule, near_limit=near_limit)
        except AdmissionRejected as e:
            logger.info(f"admission rejected container={container_id} metric={e.metric} lines={len(batch)}")
            raise
        session.add_items(batch)
        updated = session.load_container()

    metrics = build_metrics(updated, near_limit)
    logger.info(
        f"admitted container={container_id} lines={len(batch)} "
        f"weight={metrics.current_weight} capacity={metrics.current_capacity}"
    )
    return metrics


def remove_items(
    store: ContainerStore,
    container_id: str,
    item_ids: Sequence[str],
    near_limit: float = NEAR_LIMIT_PERCENT,
) -> tuple[int, ContainerMetrics]:
    """Remove lines from a container. Returns (removed_count, fresh metrics)."""
    with store.transaction(container_id) as session:
        removed = session.remove_items(item_ids)
        updated = session.load_container()

    logger.info(f"removed container={container_id} lines={removed}")
    return removed, build_metrics(updated, near_limit)

"""Exceptions raised by the engine and its persistence collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from container_limits.models import AdmissionDecision


class FieldValidationError(ValueError):
    """Numeric input outside the domain bounds of its (entity, metric). Carries every issue found."""

    def __init__(self, issues: list[dict[str, Any]]):
        self.issues = issues
        super().__init__("; ".join(issue["message"] for issue in issues))


class RangeValidationError(FieldValidationError):
    """Range filter input that cannot be normalized. Never partially applied."""


class AdmissionRejected(Exception):
    """Candidate items would push a container past one of its maximums."""

    metric: str = ""

    def __init__(self, decision: "AdmissionDecision"):
        self.decision = decision
        super().__init__(decision.reason or f"{self.metric} limit exceeded")


class WeightViolation(AdmissionRejected):
    metric = "weight"


class CapacityViolation(AdmissionRejected):
    metric = "capacity"


class ContainerNotFound(LookupError):
    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Container {container_id} not found")


class ItemNotFound(LookupError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")

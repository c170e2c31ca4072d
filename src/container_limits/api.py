"""FastAPI endpoints for container metrics, item admission and range filters."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from container_limits.admission import admit_items, check_items, remove_items
from container_limits.config import configure_logging, load_settings
from container_limits.errors import (
    AdmissionRejected,
    ContainerNotFound,
    FieldValidationError,
    ItemNotFound,
    RangeValidationError,
)
from container_limits.evaluation import build_metrics, validate_container, validate_item
from container_limits.limits import NUMBER_CONFIG
from container_limits.range_filter import RangeFilterValidator
from container_limits.models import Container, ContainerKind, Item
from container_limits.store import ContainerStore, InMemoryStore
from container_limits.units import VolumeUnit, WeightUnit

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

_QUANTITY = NUMBER_CONFIG["item"]["quantity"]


class ItemLine(BaseModel):
    """One item to put into a container."""
    item_id: str = Field(min_length=1, description="Identifier of a stored item")
    quantity: int = Field(default=1, ge=int(_QUANTITY.gte), le=int(_QUANTITY.lte), description="Units to add")


class AddItemsRequest(BaseModel):
    items: list[ItemLine] = Field(min_length=1, description="Items admitted together as one batch")


class RemoveItemsRequest(BaseModel):
    item_ids: list[str] = Field(min_length=1, description="Items to take out of the container")


class ContainerRequest(BaseModel):
    """Declared limits of a bag or suitcase; bounds depend on the kind."""
    model_config = ConfigDict(allow_inf_nan=False)

    kind: ContainerKind = Field(default=ContainerKind.BAG)
    max_capacity: float = Field(..., description="Maximum capacity in liters")
    max_weight: float = Field(..., description="Maximum total weight in kg, container included")
    tare_weight: float = Field(default=0.0, ge=0, description="Weight of the empty container in kg")


class ItemRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    weight: float = Field(..., ge=0, description="Weight of a single unit")
    weight_unit: WeightUnit = Field(default=WeightUnit.KILOGRAM)
    volume: float = Field(..., ge=0, description="Volume of a single unit")
    volume_unit: VolumeUnit = Field(default=VolumeUnit.LITER)


app = FastAPI(
    title="Container Limits API",
    description="Weight and capacity accounting and admission for bags and suitcases",
)


_store_lock = threading.Lock()


def get_store() -> ContainerStore:
    """Store configured on app.state; PostgreSQL when DATABASE_URL is set, memory otherwise."""
    store: Optional[ContainerStore] = getattr(app.state, "store", None)
    if store is not None:
        return store
    with _store_lock:
        store = getattr(app.state, "store", None)
        if store is None:
            if settings.database_url:
                from container_limits.db import PostgresStore
                store = PostgresStore(settings.database_url)
            else:
                logger.warning("DATABASE_URL not set, using in-memory store")
                store = InMemoryStore()
            app.state.store = store
    return store


def _invalid(e: FieldValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"error": "INVALID_LIMITS", "issues": e.issues})


def _not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


def _rejected(e: AdmissionRejected) -> HTTPException:
    decision = e.decision
    return HTTPException(
        status_code=409,
        detail={
            "error": f"{e.metric.upper()}_EXCEEDED",
            "metric": decision.metric,
            "reason": decision.reason,
            "metrics": decision.metrics.model_dump(mode="json"),
        },
    )


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint."""
    return {"ok": True, "admission_rule": settings.admission_rule.value}


@app.get("/health/db")
async def health_db(store: ContainerStore = Depends(get_store)) -> dict[str, Any]:
    """Check DB connectivity (SELECT 1) when the store is PostgreSQL."""
    ping = getattr(store, "ping", None)
    if ping is None:
        return {"db": "memory"}
    try:
        ping()
        return {"db": "ok"}
    except Exception as e:
        logger.warning(f"Health DB check failed: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")


@app.get("/containers/{container_id}")
def get_container(container_id: str, store: ContainerStore = Depends(get_store)) -> dict[str, Any]:
    """Container snapshot with freshly computed metrics."""
    try:
        container = store.get_container(container_id)
    except ContainerNotFound as e:
        raise _not_found(e)
    metrics = build_metrics(container, settings.near_limit_percent)
    return {
        "container": container.model_dump(mode="json"),
        "metrics": metrics.model_dump(mode="json"),
    }


@app.put("/containers/{container_id}")
def put_container(
    container_id: str,
    request: ContainerRequest,
    store: ContainerStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Create a container or update its limits; packed contents are kept.

    Returns:
        200 with the stored container and its metrics, 422 when a limit is outside the bounds for its kind
    """
    try:
        container = validate_container(Container(id=container_id, **request.model_dump()))
    except FieldValidationError as e:
        raise _invalid(e)
    store.put_container(container)
    return get_container(container_id, store)


@app.put("/items/{item_id}")
def put_item(item_id: str, request: ItemRequest, store: ContainerStore = Depends(get_store)) -> dict[str, Any]:
    """Create or replace an item; its weight and volume must be within the item bounds."""
    try:
        item = validate_item(Item(id=item_id, **request.model_dump()))
    except FieldValidationError as e:
        raise _invalid(e)
    store.put_item(item)
    return {"item": item.model_dump(mode="json")}


@app.post("/containers/{container_id}/items/check")
def check_container_items(
    container_id: str,
    request: AddItemsRequest,
    store: ContainerStore = Depends(get_store),
) -> dict[str, Any]:
    """Dry-run admission: the decision and would-be metrics, nothing written."""
    lines = [(line.item_id, line.quantity) for line in request.items]
    try:
        decision = check_items(
            store, container_id, lines,
            rule=settings.admission_rule,
            near_limit=settings.near_limit_percent,
        )
    except (ContainerNotFound, ItemNotFound) as e:
        raise _not_found(e)
    return decision.model_dump(mode="json")


@app.post("/containers/{container_id}/items")
def add_container_items(
    container_id: str,
    request: AddItemsRequest,
    store: ContainerStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Admit a batch of items into a container.

    Returns:
        200 with fresh metrics, 409 naming the exceeded metric, 404 for unknown ids
    """
    lines = [(line.item_id, line.quantity) for line in request.items]
    try:
        metrics = admit_items(
            store, container_id, lines,
            rule=settings.admission_rule,
            near_limit=settings.near_limit_percent,
        )
    except AdmissionRejected as e:
        raise _rejected(e)
    except (ContainerNotFound, ItemNotFound) as e:
        raise _not_found(e)
    except Exception as e:
        logger.error(f"ERROR adding items to {container_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"metrics": metrics.model_dump(mode="json")}


@app.delete("/containers/{container_id}/items")
def remove_container_items(
    container_id: str,
    request: RemoveItemsRequest,
    store: ContainerStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        removed, metrics = remove_items(store, container_id, request.item_ids, settings.near_limit_percent)
    except ContainerNotFound as e:
        raise _not_found(e)
    except Exception as e:
        logger.error(f"ERROR removing items from {container_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"removed": removed, "metrics": metrics.model_dump(mode="json")}


@app.post("/filters/{entity}/{metric}")
def validate_range_filter(
    entity: str,
    metric: str,
    request: dict[str, Any],
    strict: int = Query(0, description="Reject out-of-domain bounds (1) instead of clamping them (0)"),
) -> dict[str, Any]:
    """Validate and normalize a {min, max} search filter."""
    try:
        validator = RangeFilterValidator(entity, metric)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        value = validator.parse(request, clamp=strict != 1)
    except RangeValidationError as e:
        raise HTTPException(status_code=422, detail={"error": "INVALID_RANGE", "issues": e.issues})

    return {"entity": entity, "metric": metric, "range": value.model_dump()}

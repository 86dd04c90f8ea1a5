"""
Runtime Metrics Server - Update Router

Metric writes over the path-encoded and JSON surfaces.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from metrics_store import CounterOverflowError, Metric, MetricType, Storage
from ..services import PersistenceManager
from .codec import parse_counter_delta, parse_gauge_value, read_metric
from .deps import get_persistence, get_storage

logger = structlog.get_logger(__name__)

router = APIRouter()


def apply_metric(storage: Storage, kind: MetricType, metric: Metric) -> Metric:
    """Apply a validated write and return the record with its current value."""
    if kind == MetricType.COUNTER:
        try:
            total = storage.accumulate_counter(metric.id, metric.delta)
        except CounterOverflowError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return Metric.counter(metric.id, total)
    value = storage.record_gauge(metric.id, metric.value)
    return Metric.gauge(metric.id, value)


@router.post("/update/{metric_type}/{name}/{value}", response_class=PlainTextResponse)
async def update_from_path(
    metric_type: str,
    name: str,
    value: str,
    storage: Storage = Depends(get_storage),
    persistence: PersistenceManager = Depends(get_persistence),
):
    """Write a metric encoded in the URL path."""
    kind = MetricType.parse(metric_type)
    if kind is None:
        raise HTTPException(status_code=400, detail=f"Unknown metric type: {metric_type}")

    if kind == MetricType.COUNTER:
        metric = Metric.counter(name, parse_counter_delta(value))
    else:
        metric = Metric.gauge(name, parse_gauge_value(value))

    apply_metric(storage, kind, metric)
    await persistence.on_mutation()
    return PlainTextResponse("", status_code=200)


@router.post("/update/")
async def update_from_json(
    request: Request,
    storage: Storage = Depends(get_storage),
    persistence: PersistenceManager = Depends(get_persistence),
):
    """Write a JSON-encoded metric and echo it with the current value."""
    metric = await read_metric(request)

    if not metric.id:
        raise HTTPException(status_code=404, detail="Metric name is required")

    kind = MetricType.parse(metric.type)
    if kind is None:
        raise HTTPException(status_code=400, detail=f"Unknown metric type: {metric.type}")

    error = metric.payload_error(kind)
    if error:
        raise HTTPException(status_code=400, detail=error)

    result = apply_metric(storage, kind, metric)
    await persistence.on_mutation()
    logger.debug("Metric updated", metric=result.id, type=result.type)
    return result.to_dict()

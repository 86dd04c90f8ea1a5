"""
Runtime Metrics Server - Value Router

Metric reads over the path-encoded and JSON surfaces. A name that was never
written is 404, never zero.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from metrics_store import Metric, MetricType, Storage
from .codec import format_value, read_metric
from .deps import get_storage

router = APIRouter()


def lookup(storage: Storage, metric_type: str, name: str) -> Union[int, float]:
    """Current value of a metric, or 404 for an unknown kind or absent name."""
    kind = MetricType.parse(metric_type)
    if kind is None or not name:
        raise HTTPException(status_code=404, detail="Metric not found")

    value: Optional[Union[int, float]]
    if kind == MetricType.COUNTER:
        value = storage.get_counter(name)
    else:
        value = storage.get_gauge(name)

    if value is None:
        raise HTTPException(status_code=404, detail="Metric not found")
    return value


@router.get("/value/{metric_type}/{name}", response_class=PlainTextResponse)
async def value_from_path(metric_type: str, name: str, storage: Storage = Depends(get_storage)):
    """Read a metric as plain text."""
    return PlainTextResponse(format_value(lookup(storage, metric_type, name)))


@router.api_route("/value/", methods=["GET", "POST"])
async def value_from_json(request: Request, storage: Storage = Depends(get_storage)):
    """Read a metric named by a JSON body; responds with the filled-in record."""
    metric = await read_metric(request)
    value = lookup(storage, metric.type, metric.id)

    if metric.type == MetricType.COUNTER.value:
        result = Metric.counter(metric.id, value)
    else:
        result = Metric.gauge(metric.id, value)
    return result.to_dict()

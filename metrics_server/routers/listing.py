"""
Runtime Metrics Server - Listing Router

HTML page listing every stored metric.
"""

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from metrics_store import Storage
from .codec import format_value
from .deps import get_storage

router = APIRouter()

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>Metric List</title>
</head>
<body>
    <h1>Metric List</h1>
    <h2>Counter Metrics</h2>
    <ul>
{counters}
    </ul>
    <h2>Gauge Metrics</h2>
    <ul>
{gauges}
    </ul>
</body>
</html>
"""


def _items(metrics: dict) -> str:
    return "\n".join(
        f"        <li>{escape(name)}: {escape(format_value(value))}</li>"
        for name, value in sorted(metrics.items())
    )


@router.get("/", response_class=HTMLResponse)
async def list_metrics(storage: Storage = Depends(get_storage)):
    """List all counters and gauges."""
    counters, gauges = storage.snapshot()
    return HTMLResponse(PAGE_TEMPLATE.format(counters=_items(counters), gauges=_items(gauges)))

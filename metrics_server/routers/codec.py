"""
Runtime Metrics Server - Request Codec

Decoding of JSON metric bodies and path-encoded values, and plain-text
formatting of stored values.
"""

import gzip
import math
import re
import zlib
from typing import Union

from fastapi import HTTPException, Request
from pydantic import ValidationError

from metrics_store import Metric
from metrics_store.models import INT64_MAX, INT64_MIN

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_FLOAT_RE = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")


async def read_metric(request: Request) -> Metric:
    """Decode a JSON metric body, gunzipping it if needed.

    Raises 400 for a wrong content type, a corrupt gzip stream, or a body
    that is not a valid Metric.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        raise HTTPException(status_code=400, detail="Content-Type must be application/json")

    body = await request.body()
    if "gzip" in request.headers.get("content-encoding", "").lower():
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError, zlib.error):
            raise HTTPException(status_code=400, detail="Invalid gzip body")

    try:
        return Metric.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid metric: {e.error_count()} error(s)")


def parse_counter_delta(raw: str) -> int:
    """Parse a base-10 int64 delta from a URL segment."""
    if not _INTEGER_RE.match(raw):
        raise HTTPException(status_code=400, detail="Counter delta must be an integer")
    delta = int(raw)
    if not INT64_MIN <= delta <= INT64_MAX:
        raise HTTPException(status_code=400, detail="Counter delta out of range")
    return delta


def parse_gauge_value(raw: str) -> float:
    """Parse a finite float from a URL segment."""
    if not _FLOAT_RE.match(raw):
        raise HTTPException(status_code=400, detail="Gauge value must be a number")
    value = float(raw)
    if not math.isfinite(value):
        raise HTTPException(status_code=400, detail="Gauge value must be finite")
    return value


def format_value(value: Union[int, float]) -> str:
    """Plain-text rendering: integers as-is, floats without a trailing '.0'."""
    if isinstance(value, int):
        return str(value)
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text

"""
Runtime Metrics - Data Model

Wire record exchanged between agent and server, and the persisted store document.
"""

from enum import Enum
from typing import Annotated, Dict, Optional

from pydantic import BaseModel, Field, StrictInt

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

Int64 = Annotated[StrictInt, Field(ge=INT64_MIN, le=INT64_MAX)]
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


class MetricType(str, Enum):
    """Metric kinds known to the store."""
    GAUGE = "gauge"
    COUNTER = "counter"

    @classmethod
    def parse(cls, raw: str) -> Optional["MetricType"]:
        """Return the kind named by ``raw`` or None when it is unknown."""
        try:
            return cls(raw)
        except ValueError:
            return None


class Metric(BaseModel):
    """Single metric transfer record.

    Exactly one of ``delta`` (counter) or ``value`` (gauge) is expected to be
    populated; see ``payload_error`` for the check applied to writes.
    """

    # Any string is accepted for `type`; routers map unknown kinds to 400/404.
    id: str
    type: str
    delta: Optional[Int64] = None
    value: Optional[FiniteFloat] = None

    @classmethod
    def gauge(cls, name: str, value: float) -> "Metric":
        return cls(id=name, type=MetricType.GAUGE.value, value=value)

    @classmethod
    def counter(cls, name: str, delta: int) -> "Metric":
        return cls(id=name, type=MetricType.COUNTER.value, delta=delta)

    def payload_error(self, kind: MetricType) -> Optional[str]:
        """Describe why the payload does not fit ``kind``, or None if it does."""
        if self.delta is not None and self.value is not None:
            return "both delta and value supplied"
        if kind == MetricType.COUNTER and self.delta is None:
            return "counter requires delta"
        if kind == MetricType.GAUGE and self.value is None:
            return "gauge requires value"
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(exclude_none=True)


class StorageState(BaseModel):
    """Full store contents as persisted to disk."""
    counters: Dict[str, Int64] = Field(default_factory=dict)
    gauges: Dict[str, FiniteFloat] = Field(default_factory=dict)

"""
Runtime Metrics - Store Package

Metric data model and the concurrent in-memory store shared by agent and server.
"""

from .models import Metric, MetricType, StorageState
from .storage import CounterOverflowError, MemStorage, StateFormatError, Storage

__all__ = [
    "Metric",
    "MetricType",
    "StorageState",
    "Storage",
    "MemStorage",
    "StateFormatError",
    "CounterOverflowError",
]

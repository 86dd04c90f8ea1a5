"""
Runtime Metrics - Metric Storage

Storage interface shared by the sampler, the request handlers and the
persistence manager, and its in-memory implementation.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from .models import INT64_MAX, INT64_MIN, StorageState

Counters = Dict[str, int]
Gauges = Dict[str, float]


class StateFormatError(ValueError):
    """Serialized store state could not be decoded."""


class CounterOverflowError(ValueError):
    """Counter total would leave the signed 64-bit range."""

    def __init__(self, name: str, total: int):
        super().__init__(f"counter {name!r} would overflow int64 ({total})")
        self.name = name
        self.total = total


class Storage(ABC):
    """Metric storage capability.

    Implementations must make every operation atomic with respect to every
    other operation on the same instance.
    """

    @abstractmethod
    def record_gauge(self, name: str, value: float) -> float:
        """Overwrite a gauge and return the stored value."""
        pass

    @abstractmethod
    def accumulate_counter(self, name: str, delta: int) -> int:
        """Add delta to a counter and return the new total.

        Raises CounterOverflowError, leaving the counter unchanged, when the
        total would fall outside the signed 64-bit range.
        """
        pass

    @abstractmethod
    def get_gauge(self, name: str) -> Optional[float]:
        """Current gauge value, or None if the gauge was never written."""
        pass

    @abstractmethod
    def get_counter(self, name: str) -> Optional[int]:
        """Current counter total, or None if the counter was never written."""
        pass

    @abstractmethod
    def snapshot(self) -> Tuple[Counters, Gauges]:
        """Point-in-time copy of (counters, gauges)."""
        pass

    @abstractmethod
    def dump(self) -> str:
        """Export the full state as a JSON document."""
        pass

    @abstractmethod
    def load(self, state: str) -> None:
        """Replace the full state from a JSON document produced by dump()."""
        pass


class MemStorage(Storage):
    """In-memory storage guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Counters = {}
        self._gauges: Gauges = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters) + len(self._gauges)

    def record_gauge(self, name: str, value: float) -> float:
        with self._lock:
            self._gauges[name] = float(value)
            return self._gauges[name]

    def accumulate_counter(self, name: str, delta: int) -> int:
        with self._lock:
            total = self._counters.get(name, 0) + int(delta)
            if not INT64_MIN <= total <= INT64_MAX:
                raise CounterOverflowError(name, total)
            self._counters[name] = total
            return total

    def get_gauge(self, name: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get(name)

    def get_counter(self, name: str) -> Optional[int]:
        with self._lock:
            return self._counters.get(name)

    def snapshot(self) -> Tuple[Counters, Gauges]:
        with self._lock:
            return dict(self._counters), dict(self._gauges)

    def dump(self) -> str:
        with self._lock:
            state = StorageState(counters=dict(self._counters), gauges=dict(self._gauges))
        return state.model_dump_json(indent=3)

    def load(self, state: str) -> None:
        # Decode outside the lock; a bad document leaves current contents intact.
        try:
            decoded = StorageState.model_validate_json(state)
        except ValidationError as e:
            raise StateFormatError(str(e)) from e

        with self._lock:
            self._counters = dict(decoded.counters)
            self._gauges = dict(decoded.gauges)

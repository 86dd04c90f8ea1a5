"""
Runtime Metrics Agent - Telemetry Package

Samples runtime statistics into the agent's metric store.
"""

from .collector import POLL_COUNT, RANDOM_VALUE, RUNTIME_GAUGES, RuntimeSampler

__all__ = ["RuntimeSampler", "RUNTIME_GAUGES", "RANDOM_VALUE", "POLL_COUNT"]

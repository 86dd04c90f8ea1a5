"""
Runtime Metrics Agent - Transport Package

Pushes stored metrics to the metrics server.
"""

from .reporter import MetricsReporter

__all__ = ["MetricsReporter"]

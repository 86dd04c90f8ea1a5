"""
Runtime Metrics Server - Services Package

Background services for the metrics server.
"""

from .persistence import PersistenceManager, PersistenceState

__all__ = ["PersistenceManager", "PersistenceState"]

"""
Runtime Metrics Server - Router Dependencies

Hands the application's store and persistence manager to request handlers.
"""

from fastapi import Request

from metrics_store import Storage
from ..services import PersistenceManager


def get_storage(request: Request) -> Storage:
    """Metric store created at application startup."""
    return request.app.state.storage


def get_persistence(request: Request) -> PersistenceManager:
    """Persistence manager created at application startup."""
    return request.app.state.persistence

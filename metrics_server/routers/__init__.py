"""
Runtime Metrics Server - Routers Package
"""

from . import listing, update, value

__all__ = [
    "listing",
    "update",
    "value",
]

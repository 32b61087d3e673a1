"""
API routers
"""
from . import health, operations

__all__ = [
    "health",
    "operations",
]

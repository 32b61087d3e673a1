"""
API services
"""
from .metrics import GatewayMetricsService

__all__ = [
    "GatewayMetricsService",
]

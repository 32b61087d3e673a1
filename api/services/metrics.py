"""
Prometheus metrics for the gateway.

Counts operations by kind and outcome, times them, and counts standalone
probes. Exposed at ``/metrics`` when ``ENABLE_METRICS`` is set.
"""
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram
import structlog

logger = structlog.get_logger()


class GatewayMetricsService:
    """Service for collecting and exposing gateway metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.registry = registry or CollectorRegistry()
        self.enabled = enabled

        self.operations_total = Counter(
            'ffgate_operations_total',
            'Operations processed, by kind and outcome',
            ['operation', 'status'],
            registry=self.registry
        )

        self.operation_duration_seconds = Histogram(
            'ffgate_operation_duration_seconds',
            'End-to-end operation duration in seconds',
            ['operation'],
            buckets=[0.5, 1, 5, 10, 30, 60, 300, 600, 1800],
            registry=self.registry
        )

        self.probes_total = Counter(
            'ffgate_probes_total',
            'Standalone probe requests, by outcome',
            ['status'],
            registry=self.registry
        )

        logger.info("Gateway metrics service initialized", enabled=self.enabled)

    def record_operation(self, operation: str, status: str, duration_seconds: float):
        """Record one finished operation; ``status`` is ``success`` or an error code."""
        if not self.enabled:
            return
        self.operations_total.labels(operation=operation, status=status).inc()
        self.operation_duration_seconds.labels(operation=operation).observe(duration_seconds)

    def record_probe(self, status: str):
        if not self.enabled:
            return
        self.probes_total.labels(status=status).inc()

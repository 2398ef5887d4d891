"""
Prometheus metrics for the booking backend.

Metrics live in a private registry so importing this module never
collides with another process-wide registry.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from ..core.config import settings

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "alma_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "alma_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "alma_errors_total",
    "Total number of service errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_admissions_total = Counter(
    "alma_booking_admissions_total",
    "Booking admission outcomes",
    ["product_type", "outcome"],
    registry=REGISTRY,
)

session_lock_events_total = Counter(
    "alma_session_lock_events_total",
    "Session lock acquire/release outcomes",
    ["action", "backend", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin recording facade used by services."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str,
        error_type: Optional[str] = None,
    ) -> None:
        if not settings.metrics_enabled:
            return
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_admission(product_type: str, outcome: str) -> None:
        if settings.metrics_enabled:
            booking_admissions_total.labels(product_type=product_type, outcome=outcome).inc()

    @staticmethod
    def record_session_lock(action: str, backend: str, outcome: str) -> None:
        if settings.metrics_enabled:
            session_lock_events_total.labels(action=action, backend=backend, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(REGISTRY)


prometheus_metrics = PrometheusMetrics()

"""
Metrics Collection with Prometheus.

Exposes entitlement resolution and restore metrics for monitoring.
"""

from collections.abc import Callable
from enum import StrEnum

from prometheus_client import Counter, Histogram, Info

from entitlement_engine.config import settings


class MetricLabels(StrEnum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ENTITLEMENT_TYPE = "entitlement_type"
    ERROR_TYPE = "error_type"


class EntitlementMetrics:
    """
    Centralized metrics for the entitlement engine.

    Covers:
    - HTTP requests (rate, duration)
    - Premium state resolutions by entitlement type
    - Legacy restore outcomes and validation calls
    - RevenueCat subscriber lookups
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "entitlement_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "entitlement_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "entitlement_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        # ====================================================================
        # Resolution Metrics
        # ====================================================================
        self.resolutions_total = Counter(
            "entitlement_resolutions_total",
            "Total premium state resolutions",
            [MetricLabels.ENTITLEMENT_TYPE],
        )

        # ====================================================================
        # Restore Metrics
        # ====================================================================
        self.legacy_restores_total = Counter(
            "entitlement_legacy_restores_total",
            "Total legacy-aware restore attempts by outcome",
            [MetricLabels.OUTCOME],
        )

        self.validation_calls_total = Counter(
            "entitlement_validation_calls_total",
            "Total purchase validation calls by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Subscriber Lookup Metrics
        # ====================================================================
        self.subscriber_lookups_total = Counter(
            "entitlement_subscriber_lookups_total",
            "Total RevenueCat subscriber lookups by outcome",
            [MetricLabels.OUTCOME],
        )

        self.subscriber_lookup_duration_seconds = Histogram(
            "entitlement_subscriber_lookup_duration_seconds",
            "RevenueCat subscriber lookup duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "entitlement_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_resolution(self, entitlement_type: str) -> None:
        """Record a premium state resolution."""
        self.resolutions_total.labels(entitlement_type=entitlement_type).inc()

    def record_legacy_restore(self, outcome: str) -> None:
        """Record a legacy restore outcome."""
        self.legacy_restores_total.labels(outcome=outcome).inc()

    def record_validation_call(self, outcome: str) -> None:
        """Record a purchase validation call outcome."""
        self.validation_calls_total.labels(outcome=outcome).inc()

    def record_subscriber_lookup(self, outcome: str, duration: float) -> None:
        """Record RevenueCat subscriber lookup metrics."""
        self.subscriber_lookups_total.labels(outcome=outcome).inc()
        self.subscriber_lookup_duration_seconds.observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = EntitlementMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """
    Get Prometheus metrics handler for FastAPI.

    Usage:
        handler = get_metrics_handler()
        return PlainTextResponse(handler())
    """
    from prometheus_client import REGISTRY, generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_endpoint

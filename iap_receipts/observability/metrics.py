"""
Metrics Collection with Prometheus.

Exposes receipt verification and HTTP metrics for monitoring.
"""

from enum import StrEnum

from prometheus_client import Counter, Gauge, Histogram, Info

from iap_receipts.config import settings


class MetricLabels(StrEnum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ENVIRONMENT = "environment"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class ReceiptMetrics:
    """
    Centralized metrics for the receipts API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Calls to Apple verifyReceipt (rate, duration, outcome per environment)
    - Environment fallbacks (21007 / 21008 redirects)
    - Entitlement resolutions (found, none, cancelled)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "receipts_service",
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
            "receipts_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "receipts_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "receipts_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Apple verifyReceipt Metrics
        # ====================================================================
        self.apple_requests_total = Counter(
            "receipts_apple_requests_total",
            "Total calls to Apple verifyReceipt",
            [MetricLabels.ENVIRONMENT, MetricLabels.OUTCOME],
        )

        self.apple_request_duration_seconds = Histogram(
            "receipts_apple_request_duration_seconds",
            "Apple verifyReceipt call duration in seconds",
            [MetricLabels.ENVIRONMENT],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.environment_fallbacks_total = Counter(
            "receipts_environment_fallbacks_total",
            "Receipts resubmitted to the other environment",
            ["from_environment", "to_environment"],
        )

        # ====================================================================
        # Entitlement Metrics
        # ====================================================================
        self.entitlements_resolved_total = Counter(
            "receipts_entitlements_resolved_total",
            "Entitlement resolutions by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "receipts_errors_total",
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

    def record_apple_request(self, environment: str, outcome: str, duration: float) -> None:
        """Record one verifyReceipt round trip."""
        self.apple_requests_total.labels(environment=environment, outcome=outcome).inc()
        self.apple_request_duration_seconds.labels(environment=environment).observe(duration)

    def record_fallback(self, from_environment: str, to_environment: str) -> None:
        """Record a redirect to the other environment."""
        self.environment_fallbacks_total.labels(
            from_environment=from_environment, to_environment=to_environment
        ).inc()

    def record_entitlement(self, outcome: str) -> None:
        """Record an entitlement resolution outcome (active, cancelled, none)."""
        self.entitlements_resolved_total.labels(outcome=outcome).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ReceiptMetrics()

"""Logger and Prometheus metrics for one running service instance.

An ``Observability`` object is built once at startup and handed to the
service facade and the HTTP layer. It owns its own ``CollectorRegistry``
rather than the global default one, so several instances (one per test
app, say) can coexist in a process.

Metrics exported:
- http_requests_total: Counter of handled requests by method and route
- http_request_duration_seconds: Histogram of request latency
- http_request_errors_total: Counter of responses with status >= 400
- calendar_slot_conflicts_total: Counter of writes refused as slot conflicts
- calendar_store_errors_total: Counter of backend failures by operation
"""

from __future__ import annotations

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from calendar_service.logging_config import LOGGER_NAME


class Observability:
    """Metrics collector and logger shared by the facade and the API."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        logger: logging.Logger | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests handled",
            labelnames=["method", "path"],
            registry=self.registry,
        )
        self.request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "Latency of HTTP requests in seconds",
            labelnames=["method", "path"],
            registry=self.registry,
        )
        self.request_errors_total = Counter(
            "http_request_errors_total",
            "Total number of HTTP responses with an error status",
            labelnames=["method", "path", "status"],
            registry=self.registry,
        )
        self.slot_conflicts_total = Counter(
            "calendar_slot_conflicts_total",
            "Total number of writes refused because the slot was taken",
            labelnames=["operation"],
            registry=self.registry,
        )
        self.store_errors_total = Counter(
            "calendar_store_errors_total",
            "Total number of storage backend failures",
            labelnames=["operation"],
            registry=self.registry,
        )

    def record_request(self, method: str, path: str, status: int, duration: float) -> None:
        self.requests_total.labels(method=method, path=path).inc()
        self.request_duration_seconds.labels(method=method, path=path).observe(duration)
        if status >= 400:
            self.request_errors_total.labels(method=method, path=path, status=str(status)).inc()

    def record_conflict(self, operation: str) -> None:
        self.slot_conflicts_total.labels(operation=operation).inc()

    def record_store_error(self, operation: str) -> None:
        self.store_errors_total.labels(operation=operation).inc()

    def render(self) -> bytes:
        """Return the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def shutdown(self) -> None:
        """Flush the logger's handlers at process exit."""
        for handler in self.logger.handlers:
            handler.flush()

"""Prometheus instrumentation for the Salt REST API client.

Metrics are registered on a dedicated registry per client (never the global
one) so several clients can live in one process.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram


class ClientMetrics:
    """Counters and timings for requests, waits and token renewals."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Create and register the client metrics.

        Args:
            registry: Registry to register on. A fresh one is created if
                omitted.
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        self.requests = Counter(
            "salt_api_requests",
            "Salt REST API requests by operation and outcome",
            labelnames=["operation", "outcome"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            "salt_api_request_duration_seconds",
            "Salt REST API request duration in seconds",
            labelnames=["operation"],
            registry=self.registry,
        )
        self.waits = Counter(
            "salt_api_wait",
            "Completed wait loops by terminal outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )
        self.renewals = Counter(
            "salt_api_token_renewals",
            "Automatic token renewals by outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )

    def observe_request(self, operation: str, outcome: str, duration: float) -> None:
        self.requests.labels(operation=operation, outcome=outcome).inc()
        self.request_duration.labels(operation=operation).observe(duration)

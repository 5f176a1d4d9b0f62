"""
Prometheus metrics for the edge gateway.
"""

from typing import Any, Dict, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest

# name -> (help, labels)
EDGE_COUNTERS: Dict[str, Tuple[str, List[str]]] = {
    "admission_decisions_total": (
        "Tunnel admission decisions",
        ["decision", "source"],
    ),
    "admin_mutations_total": (
        "Subscriber record mutations through the admin API",
        ["operation"],
    ),
    "cache_invalidations_total": (
        "Decision cache invalidations after admin mutations",
        ["status"],
    ),
    "relay_requests_total": (
        "Passthrough requests forwarded upstream",
        ["target", "status"],
    ),
}


class MetricsCollector:
    """Metrics for one service instance.

    Every collector owns its registry so several service instances (and
    test apps) can coexist in one process without duplicate registration.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry
        )
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "route"],
            registry=self.registry
        )
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Health check results",
            ["status"],
            registry=self.registry
        )
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Errors rendered as error responses",
            ["error_type", "service"],
            registry=self.registry
        )

        if service_name == "edge":
            for name, (documentation, labels) in EDGE_COUNTERS.items():
                self._metrics[name] = Counter(name, documentation, labels, registry=self.registry)

    def render(self) -> bytes:
        """Registry contents in Prometheus text exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, route: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method,
            route=route,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, route=route).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str):
        self._metrics["errors_total"].labels(error_type=error_type, service=self.service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a named counter; unknown names are ignored."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

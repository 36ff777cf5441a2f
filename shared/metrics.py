"""
Shared metrics configuration for the catalog cache service.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, start_http_server


class MetricsCollector:
    """Centralized metrics collector for the service."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Private registry unless one is supplied; the default one rejects duplicates.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up catalog cache metrics."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["catalog_cache_lookups_total"] = Counter(
            "catalog_cache_lookups_total",
            "Cache lookups by cache kind and result",
            ["cache", "result"],
            registry=self.registry
        )

        self._metrics["catalog_origin_requests_total"] = Counter(
            "catalog_origin_requests_total",
            "Requests issued to the origin catalog API",
            ["endpoint", "outcome"],
            registry=self.registry
        )

        self._metrics["catalog_detail_warm_total"] = Counter(
            "catalog_detail_warm_total",
            "Detail cache writer outcomes",
            ["result"],
            registry=self.registry
        )

        self._metrics["catalog_warm_inflight"] = Gauge(
            "catalog_warm_inflight",
            "Detail warms currently in flight",
            registry=self.registry
        )

        self._metrics["catalog_warm_run_duration_seconds"] = Histogram(
            "catalog_warm_run_duration_seconds",
            "Duration of a full warming run in seconds",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def _resolve(self, metric_name: str, labels: Dict[str, Any]):
        metric = self._metrics.get(metric_name)
        if metric is None:
            return None
        return metric.labels(**labels) if labels else metric

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        metric = self._resolve(metric_name, labels)
        if metric is not None:
            metric.inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        metric = self._resolve(metric_name, labels)
        if metric is not None:
            metric.set(value)

    def inc_gauge(self, metric_name: str, **labels):
        """Increment a gauge metric."""
        metric = self._resolve(metric_name, labels)
        if metric is not None:
            metric.inc()

    def dec_gauge(self, metric_name: str, **labels):
        """Decrement a gauge metric."""
        metric = self._resolve(metric_name, labels)
        if metric is not None:
            metric.dec()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        metric = self._resolve(metric_name, labels)
        if metric is not None:
            metric.observe(value)

    def sample(self, metric_name: str, **labels) -> Optional[float]:
        """Read the current value of a sample from the registry."""
        return self.registry.get_sample_value(metric_name, labels or None)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

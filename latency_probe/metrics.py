"""Metrics sink: latency gauge, failure counter and optional latency histogram."""

from __future__ import annotations

from typing import Protocol

import structlog
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest


logger = structlog.get_logger(__name__)

LABELS = ("target", "probe_type")

LATENCY_BUCKETS_MS = (
    0.05, 0.1, 0.2, 0.5, 1.0,
    2.0, 5.0, 10.0, 20.0, 50.0, 100.0, 250.0, 500.0, 1000.0,
)


class MetricsSink(Protocol):
    """Narrow recording surface used by the dispatch engine. Must be safe to call concurrently."""

    def record_latency(self, target_name: str, probe_type: str, latency_ms: float) -> None: ...

    def record_failure(self, target_name: str, probe_type: str) -> None: ...


class PrometheusMetricsSink:
    """
    Prometheus-backed sink with its own registry.

    prometheus_client guards every metric child with an internal lock, so callers
    on any task or thread can record without coordinating.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        enable_latency_history: bool = False,
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.enable_latency_history = bool(enable_latency_history)

        self._latency = Gauge(
            "probe_latency_milliseconds_current",
            "Current probe latency in milliseconds",
            LABELS,
            registry=self.registry,
        )
        # Exposed as probe_timeout_total; counts every failed probe, not only timeouts.
        self._failures = Counter(
            "probe_timeout",
            "Total number of failed probes (timeouts and errors)",
            LABELS,
            registry=self.registry,
        )
        self._history: Histogram | None = None
        if self.enable_latency_history:
            self._history = Histogram(
                "probe_latency_milliseconds",
                "Probe latency in milliseconds",
                LABELS,
                buckets=LATENCY_BUCKETS_MS,
                registry=self.registry,
            )

        logger.info("Metrics sink initialized", latency_history=self.enable_latency_history)

    def record_latency(self, target_name: str, probe_type: str, latency_ms: float) -> None:
        self._latency.labels(target=target_name, probe_type=probe_type).set(float(latency_ms))
        if self._history is not None:
            self._history.labels(target=target_name, probe_type=probe_type).observe(float(latency_ms))

    def record_failure(self, target_name: str, probe_type: str) -> None:
        self._failures.labels(target=target_name, probe_type=probe_type).inc()

    def failure_count(self, target_name: str, probe_type: str) -> float:
        value = self.registry.get_sample_value(
            "probe_timeout_total", {"target": target_name, "probe_type": probe_type}
        )
        return float(value or 0.0)

    def current_latency(self, target_name: str, probe_type: str) -> float | None:
        return self.registry.get_sample_value(
            "probe_latency_milliseconds_current", {"target": target_name, "probe_type": probe_type}
        )

    def render(self) -> tuple[bytes, str]:
        """Prometheus text exposition of this sink's registry and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Prometheus metrics collector implementation."""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


class PrometheusMetricsCollector(MetricsCollector):
    """Prometheus metrics collector for production observability.

    All calls to the same metric name must use consistent label keys;
    Prometheus rejects a metric re-registered with a different label set.
    """

    def __init__(self, registry: CollectorRegistry | None = None, namespace: str = "system_config",
                 raise_on_error: bool = False):
        """Initialize Prometheus metrics collector.

        Args:
            registry: Optional Prometheus registry (uses default if None)
            namespace: Namespace prefix for all metrics
            raise_on_error: If True, raise exceptions on metric errors (useful for testing).
                           If False, log errors and continue.
        """
        self.registry = registry
        self.namespace = namespace
        self.raise_on_error = raise_on_error
        self._metrics: dict[tuple[type, str, tuple[str, ...]], object] = {}
        self._metrics_errors_count = 0

    def _get_or_create(self, metric_type: type, name: str, tags: dict[str, str] | None):
        labelnames = tuple(sorted(tags.keys())) if tags else ()
        cache_key = (metric_type, name, labelnames)

        if cache_key not in self._metrics:
            kwargs = {
                "name": name,
                "documentation": f"{metric_type.__name__} metric: {name}",
                "labelnames": labelnames,
                "namespace": self.namespace,
            }
            if self.registry is not None:
                kwargs["registry"] = self.registry
            self._metrics[cache_key] = metric_type(**kwargs)

        metric = self._metrics[cache_key]
        return metric.labels(**tags) if tags else metric

    def _record(self, metric_type: type, method: str, name: str, value: float,
                tags: dict[str, str] | None) -> None:
        try:
            getattr(self._get_or_create(metric_type, name, tags), method)(value)
        except ValueError as e:
            self._metrics_errors_count += 1
            logger.error(f"Failed to record {metric_type.__name__.lower()} {name}: {e}")
            if self.raise_on_error:
                raise

    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        """Increment a Prometheus counter.

        Args:
            name: Counter name; exported as ``{namespace}_{name}``
            value: Amount to increment by (must not be negative)
            tags: Optional labels for the metric
        """
        self._record(Counter, "inc", name, value, tags)

    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Observe a value on a Prometheus histogram with the default buckets.

        Args:
            name: Histogram name; exported as ``{namespace}_{name}``
            value: Value to observe
            tags: Optional labels for the metric
        """
        self._record(Histogram, "observe", name, value, tags)

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Set a Prometheus gauge.

        Args:
            name: Gauge name; exported as ``{namespace}_{name}``
            value: Value to set the gauge to
            tags: Optional labels for the metric
        """
        self._record(Gauge, "set", name, value, tags)

    def get_errors_count(self) -> int:
        """Number of errors that occurred during metrics collection."""
        return self._metrics_errors_count

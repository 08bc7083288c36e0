# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Metrics collection abstraction for observability."""

import os
from abc import ABC, abstractmethod


class MetricsCollector(ABC):
    """Abstract base class for metrics collectors."""

    @abstractmethod
    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        """Increment a counter metric.

        Args:
            name: Name of the counter metric
            value: Amount to increment by (default: 1.0)
            tags: Optional dictionary of tags/labels for the metric
        """
        pass

    @abstractmethod
    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Observe a value for histogram metrics (durations, sizes).

        Args:
            name: Name of the histogram metric
            value: Value to observe
            tags: Optional dictionary of tags/labels for the metric
        """
        pass

    @abstractmethod
    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Set a gauge metric to a specific value.

        Args:
            name: Name of the gauge metric
            value: Value to set the gauge to
            tags: Optional dictionary of tags/labels for the metric
        """
        pass


def create_metrics_collector(backend: str | None = None, **kwargs) -> MetricsCollector:
    """Factory function to create a metrics collector based on backend type.

    Args:
        backend: "prometheus" or "noop"; defaults to METRICS_BACKEND env or "noop"
        **kwargs: Additional backend-specific arguments

    Returns:
        MetricsCollector instance

    Raises:
        ValueError: If backend type is unknown
    """
    if backend is None:
        backend = os.getenv("METRICS_BACKEND", "noop")

    backend = backend.lower()

    if backend == "prometheus":
        from .prometheus_metrics import PrometheusMetricsCollector
        return PrometheusMetricsCollector(**kwargs)
    elif backend == "noop":
        from .noop_metrics import NoOpMetricsCollector
        return NoOpMetricsCollector(**kwargs)
    else:
        raise ValueError(f"Unknown metrics backend: {backend}")

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""No-op metrics collector for testing and local development."""

import logging

from .metrics import MetricsCollector

logger = logging.getLogger(__name__)

_Sample = tuple[str, float, dict[str, str] | None]


class NoOpMetricsCollector(MetricsCollector):
    """Metrics collector that only records calls in memory.

    Nothing is exported. Tests use the recorded samples to assert on the
    counters, histograms and gauges a component emits.
    """

    def __init__(self, **kwargs):
        """Initialize the collector.

        Args:
            **kwargs: Ignored, accepted so the factory can pass backend options
        """
        self.counters: list[_Sample] = []
        self.observations: list[_Sample] = []
        self.gauges: list[_Sample] = []

    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        """Record a counter increment.

        Args:
            name: Counter name, e.g. ``config_changes_total``
            value: Amount to add (default: 1.0)
            tags: Optional labels for the sample
        """
        self.counters.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: increment {name} by {value} with tags {tags}")

    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a histogram observation.

        Args:
            name: Histogram name, e.g. ``notification_delivery_seconds``
            value: Observed value
            tags: Optional labels for the sample
        """
        self.observations.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: observe {name} value {value} with tags {tags}")

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a gauge setting.

        Args:
            name: Gauge name, e.g. ``secrets_rotation_due``
            value: New gauge value
            tags: Optional labels for the sample
        """
        self.gauges.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: gauge {name} set to {value} with tags {tags}")

    def clear_metrics(self) -> None:
        """Forget every recorded sample."""
        self.counters.clear()
        self.observations.clear()
        self.gauges.clear()

    def get_counter_total(self, name: str, tags: dict[str, str] | None = None) -> float:
        """Sum the increments recorded for a counter.

        Args:
            name: Counter name
            tags: Exact labels to match; None sums every sample with the name

        Returns:
            Total of the matching increments
        """
        return sum(
            value for counter_name, value, counter_tags in self.counters
            if counter_name == name and (tags is None or counter_tags == tags)
        )

    def get_observations(self, name: str, tags: dict[str, str] | None = None) -> list[float]:
        """Return the values observed for a histogram.

        Args:
            name: Histogram name
            tags: Exact labels to match; None returns every sample with the name

        Returns:
            Observed values in recording order
        """
        return [
            value for obs_name, value, obs_tags in self.observations
            if obs_name == name and (tags is None or obs_tags == tags)
        ]

    def get_gauge_value(self, name: str, tags: dict[str, str] | None = None) -> float | None:
        """Return the last value a gauge was set to.

        Args:
            name: Gauge name
            tags: Exact labels to match; None considers every sample with the name

        Returns:
            Most recent value, or None if the gauge was never set
        """
        values = [
            value for gauge_name, value, gauge_tags in self.gauges
            if gauge_name == name and (tags is None or gauge_tags == tags)
        ]
        return values[-1] if values else None

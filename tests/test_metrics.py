# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for the metrics adapter."""

import os
from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from sysconfig_metrics import MetricsCollector, NoOpMetricsCollector, create_metrics_collector
from sysconfig_metrics.prometheus_metrics import PrometheusMetricsCollector


class TestMetricsFactory:
    """Tests for create_metrics_collector."""

    def test_noop(self):
        collector = create_metrics_collector("noop")

        assert isinstance(collector, NoOpMetricsCollector)
        assert isinstance(collector, MetricsCollector)

    def test_prometheus(self):
        collector = create_metrics_collector("Prometheus", registry=CollectorRegistry())

        assert isinstance(collector, PrometheusMetricsCollector)

    def test_from_env(self):
        with patch.dict(os.environ, {"METRICS_BACKEND": "noop"}):
            assert isinstance(create_metrics_collector(), NoOpMetricsCollector)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown metrics backend"):
            create_metrics_collector("statsd")


class TestNoOpMetricsCollector:
    """Tests for the recording test collector."""

    def test_counter_totals(self):
        collector = NoOpMetricsCollector()

        collector.increment("secret_access_total", tags={"action": "read", "outcome": "success"})
        collector.increment("secret_access_total", 2, tags={"action": "read", "outcome": "success"})
        collector.increment("secret_access_total", tags={"action": "read", "outcome": "expired"})

        assert collector.get_counter_total("secret_access_total") == 4
        assert collector.get_counter_total(
            "secret_access_total", {"action": "read", "outcome": "success"}
        ) == 3

    def test_observations_and_gauges(self):
        collector = NoOpMetricsCollector()

        collector.observe("webhook_latency_seconds", 0.5)
        collector.observe("webhook_latency_seconds", 1.5)
        collector.gauge("subscriptions_active", 3)

        assert collector.get_observations("webhook_latency_seconds") == [0.5, 1.5]
        assert collector.gauges == [("subscriptions_active", 3, None)]

    def test_gauge_value_is_the_latest_setting(self):
        """Gauges report their last value; an unset gauge reports None."""
        collector = NoOpMetricsCollector()

        collector.gauge("secrets_rotation_due", 4)
        collector.gauge("secrets_rotation_due", 1)

        assert collector.get_gauge_value("secrets_rotation_due") == 1
        assert collector.get_gauge_value("subscriptions_active") is None

    def test_clear(self):
        collector = NoOpMetricsCollector()
        collector.increment("x")

        collector.clear_metrics()

        assert collector.get_counter_total("x") == 0


class TestPrometheusMetricsCollector:
    """Tests for the Prometheus collector with an isolated registry."""

    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    def test_counter_with_labels(self, registry):
        collector = PrometheusMetricsCollector(registry=registry)

        collector.increment("config_changes_total", tags={"change_type": "update", "environment": "production"})
        collector.increment("config_changes_total", tags={"change_type": "update", "environment": "production"})

        assert registry.get_sample_value(
            "system_config_config_changes_total", {"change_type": "update", "environment": "production"}
        ) == 2.0

    def test_counter_without_labels(self, registry):
        collector = PrometheusMetricsCollector(registry=registry)

        collector.increment("subscriptions_paused_total", 3)

        assert registry.get_sample_value("system_config_subscriptions_paused_total") == 3.0

    def test_gauge_and_histogram(self, registry):
        collector = PrometheusMetricsCollector(registry=registry, namespace="test")

        collector.gauge("subscriptions_active", 4)
        collector.observe("delivery_seconds", 0.2)

        assert registry.get_sample_value("test_subscriptions_active") == 4.0
        assert registry.get_sample_value("test_delivery_seconds_count") == 1.0

    def test_errors_are_counted(self, registry):
        collector = PrometheusMetricsCollector(registry=registry)

        collector.increment("bad_total", -1)

        assert collector.get_errors_count() == 1

    def test_raise_on_error(self, registry):
        collector = PrometheusMetricsCollector(registry=registry, raise_on_error=True)

        with pytest.raises(ValueError):
            collector.increment("bad_total", -1)

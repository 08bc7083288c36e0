# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Metrics adapter for the system config service."""

__version__ = "0.1.0"

from .metrics import MetricsCollector, create_metrics_collector
from .noop_metrics import NoOpMetricsCollector

__all__ = [
    "__version__",
    "MetricsCollector",
    "NoOpMetricsCollector",
    "create_metrics_collector",
]

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Configuration adapter for the system config service."""

__version__ = "0.1.0"

from .base import ConfigProvider
from .env_provider import EnvConfigProvider
from .service_config import (
    CacheSettings,
    DeliverySettings,
    DocumentStoreSettings,
    ServiceConfig,
    ServiceConfigError,
    load_service_config,
)
from .static_provider import StaticConfigProvider

__all__ = [
    "__version__",
    "ConfigProvider",
    "EnvConfigProvider",
    "StaticConfigProvider",
    "ServiceConfig",
    "ServiceConfigError",
    "DocumentStoreSettings",
    "CacheSettings",
    "DeliverySettings",
    "load_service_config",
]

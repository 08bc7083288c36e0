# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Structured logging adapter for the system config service.

Example:
    >>> from sysconfig_logging import create_logger
    >>> logger = create_logger(logger_type="stdout", level="INFO", name="config-service")
    >>> logger.info("config_created", config_key="db.timeout", version=1)
    >>>
    >>> test_logger = create_logger(logger_type="silent")
    >>> test_logger.info("subscription_paused")
    >>> test_logger.has_log("subscription_paused")
    True
"""

__version__ = "0.1.0"

from .factory import create_logger
from .logger import Logger
from .silent_logger import SilentLogger
from .stdout_logger import StdoutLogger
from .uvicorn_config import create_uvicorn_log_config

__all__ = [
    "__version__",
    "Logger",
    "SilentLogger",
    "StdoutLogger",
    "create_logger",
    "create_uvicorn_log_config",
]

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Environment-backed configuration provider."""

import os
from collections.abc import Mapping
from typing import Any

from .base import ConfigProvider, parse_bool


class EnvConfigProvider(ConfigProvider):
    """Configuration provider that reads from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, key: str, default: Any = None) -> Any:
        value = self._environ.get(key)
        # Empty variables count as unset
        return default if value in (None, "") else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        return parse_bool(self._environ.get(key), default)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._environ.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Environment variable secret provider."""

import os
from collections.abc import Mapping

from .exceptions import SecretNotFoundError
from .provider import SecretProvider


class EnvSecretProvider(SecretProvider):
    """Secret provider backed by environment variables.

    A secret named ``encryption_key`` is read from ``ENCRYPTION_KEY`` (the
    name upper-cased, with an optional prefix).
    """

    def __init__(self, prefix: str = "", environ: Mapping[str, str] | None = None):
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def _variable(self, key_name: str) -> str:
        return f"{self.prefix}{key_name}".upper().replace("-", "_")

    def get_secret(self, key_name: str) -> str:
        value = self._environ.get(self._variable(key_name))
        if not value:
            raise SecretNotFoundError(f"Secret not found: {key_name}")
        return value

    def secret_exists(self, key_name: str) -> bool:
        return bool(self._environ.get(self._variable(key_name)))

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Bootstrap secret providers for the system config service."""

__version__ = "0.1.0"

from .env_provider import EnvSecretProvider
from .exceptions import SecretError, SecretNotFoundError, SecretProviderError
from .factory import create_secret_provider
from .local_provider import LocalFileSecretProvider
from .provider import SecretProvider

__all__ = [
    "__version__",
    "SecretProvider",
    "LocalFileSecretProvider",
    "EnvSecretProvider",
    "create_secret_provider",
    "SecretError",
    "SecretNotFoundError",
    "SecretProviderError",
]

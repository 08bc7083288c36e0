# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Factory for creating secret providers."""

from typing import Any

from .env_provider import EnvSecretProvider
from .exceptions import SecretProviderError
from .local_provider import LocalFileSecretProvider
from .provider import SecretProvider


def create_secret_provider(provider_type: str, **kwargs: Any) -> SecretProvider:
    """Create a secret provider.

    Args:
        provider_type: "local" or "env"
        **kwargs: Provider-specific configuration

    Raises:
        SecretProviderError: If provider_type is unknown

    Example:
        >>> provider = create_secret_provider("local", base_path="/run/secrets")
    """
    providers: dict[str, type[SecretProvider]] = {
        "local": LocalFileSecretProvider,
        "env": EnvSecretProvider,
    }

    if provider_type not in providers:
        raise SecretProviderError(
            f"Unknown provider type: {provider_type}. "
            f"Available: {', '.join(providers.keys())}"
        )

    return providers[provider_type](**kwargs)

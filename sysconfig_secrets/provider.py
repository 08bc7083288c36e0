# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Base secret provider interface."""

from abc import ABC, abstractmethod


class SecretProvider(ABC):
    """Abstract base class for bootstrap secret providers.

    These supply the service's own secrets (such as the master encryption
    key) at startup. They are unrelated to the tenant secrets the service
    stores.
    """

    @abstractmethod
    def get_secret(self, key_name: str) -> str:
        """Retrieve a secret by name.

        Raises:
            SecretNotFoundError: If the secret does not exist
            SecretProviderError: If retrieval fails
        """
        pass

    @abstractmethod
    def secret_exists(self, key_name: str) -> bool:
        """Check if a secret exists."""
        pass

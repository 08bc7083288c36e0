# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Local filesystem secret provider."""

from pathlib import Path

from sysconfig_logging import create_logger

from .exceptions import SecretNotFoundError, SecretProviderError
from .provider import SecretProvider

logger = create_logger(logger_type="stdout", level="INFO", name="sysconfig_secrets.local")


class LocalFileSecretProvider(SecretProvider):
    """Secret provider that reads secrets from a directory of files.

    Each file holds one secret and the filename is the secret name, which is
    how Docker and Kubernetes mount secrets.

    Example:
        >>> provider = LocalFileSecretProvider(base_path="/run/secrets")
        >>> key = provider.get_secret("system_config_encryption_key")
    """

    def __init__(self, base_path: str):
        """Initialize the provider.

        Raises:
            SecretProviderError: If base_path does not exist or is not a directory
        """
        self.base_path = Path(base_path)

        if not self.base_path.exists():
            raise SecretProviderError("Secret base path does not exist")
        if not self.base_path.is_dir():
            raise SecretProviderError("Secret base path is not a directory")

        logger.info("secret_provider_initialized", provider="local")

    def _get_secret_path(self, key_name: str) -> Path:
        potential_path = (self.base_path / key_name).resolve()
        try:
            potential_path.relative_to(self.base_path.resolve())
        except ValueError as e:
            raise SecretProviderError(
                f"Invalid secret name (path traversal detected): {key_name}"
            ) from e
        return potential_path

    def get_secret(self, key_name: str) -> str:
        """Read a secret file, stripping surrounding whitespace.

        Raises:
            SecretNotFoundError: If the secret file does not exist
            SecretProviderError: If reading the file fails
        """
        secret_path = self._get_secret_path(key_name)

        if not secret_path.exists():
            raise SecretNotFoundError(f"Secret not found: {key_name}")
        if not secret_path.is_file():
            raise SecretProviderError(f"Secret path is not a file: {key_name}")

        try:
            with open(secret_path, encoding="utf-8") as f:
                return f.read().strip()
        except OSError as e:
            raise SecretProviderError(f"Failed to read secret {key_name}: {e}") from e

    def secret_exists(self, key_name: str) -> bool:
        try:
            return self._get_secret_path(key_name).is_file()
        except SecretProviderError:
            return False

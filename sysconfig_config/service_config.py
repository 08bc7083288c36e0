# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Typed settings for the system config service.

Settings are read once at startup from a :class:`ConfigProvider` and passed
to the components as plain values; nothing below the bootstrap layer reads
the environment directly.
"""

from dataclasses import dataclass, field

from .base import ConfigProvider

DEFAULT_AUDIT_RETENTION_DAYS = 5 * 365


class ServiceConfigError(ValueError):
    """Raised when the service settings are inconsistent."""
    pass


@dataclass
class DocumentStoreSettings:
    store_type: str = "inmemory"
    host: str = "localhost"
    port: int = 27017
    database: str = "system_config"
    username: str | None = None
    password: str | None = None


@dataclass
class CacheSettings:
    cache_type: str = "inmemory"
    url: str = "redis://localhost:6379/0"
    ttl_seconds: int = 300
    negative_ttl_seconds: int = 30


@dataclass
class DeliverySettings:
    failure_threshold: int = 5
    max_attempts: int = 3
    backoff: str = "exponential"
    base_delay_ms: int = 200
    max_delay_ms: int = 5000
    timeout_seconds: float = 10.0
    max_workers: int = 8


@dataclass
class ServiceConfig:
    """Settings consumed by the bootstrap layer."""

    service_name: str = "system-config"
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    log_type: str = "stdout"
    log_level: str = "INFO"
    metrics_backend: str = "noop"
    document_store: DocumentStoreSettings = field(default_factory=DocumentStoreSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    encryption_key: str | None = None
    encryption_key_secret: str | None = None
    secret_provider_type: str = "env"
    secrets_path: str = "/run/secrets"
    audit_retention_days: int = DEFAULT_AUDIT_RETENTION_DAYS

    def validate(self) -> None:
        """Check cross-field constraints.

        Raises:
            ServiceConfigError: If a setting is out of range
        """
        if not self.encryption_key and not self.encryption_key_secret:
            raise ServiceConfigError(
                "Either ENCRYPTION_KEY or ENCRYPTION_KEY_SECRET must be set"
            )
        if self.delivery.failure_threshold < 1:
            raise ServiceConfigError("FAILURE_THRESHOLD must be at least 1")
        if self.delivery.max_attempts < 1:
            raise ServiceConfigError("DELIVERY_MAX_ATTEMPTS must be at least 1")
        if self.delivery.backoff not in ("none", "fixed", "exponential"):
            raise ServiceConfigError(f"Unknown DELIVERY_BACKOFF: {self.delivery.backoff}")
        if self.audit_retention_days < 1:
            raise ServiceConfigError("AUDIT_RETENTION_DAYS must be at least 1")


def load_service_config(provider: ConfigProvider) -> ServiceConfig:
    """Build a validated :class:`ServiceConfig` from a provider."""
    timeout = provider.get("DELIVERY_TIMEOUT_SECONDS", 10.0)
    try:
        timeout_seconds = float(timeout)
    except (TypeError, ValueError) as e:
        raise ServiceConfigError(f"Invalid DELIVERY_TIMEOUT_SECONDS: {timeout}") from e

    config = ServiceConfig(
        service_name=provider.get("SERVICE_NAME", "system-config"),
        http_host=provider.get("HTTP_HOST", "0.0.0.0"),
        http_port=provider.get_int("HTTP_PORT", 8000),
        log_type=provider.get("LOG_TYPE", "stdout"),
        log_level=str(provider.get("LOG_LEVEL", "INFO")).upper(),
        metrics_backend=provider.get("METRICS_BACKEND", "noop"),
        document_store=DocumentStoreSettings(
            store_type=provider.get("DOCUMENT_STORE_TYPE", "inmemory"),
            host=provider.get("DOCUMENT_DATABASE_HOST", "localhost"),
            port=provider.get_int("DOCUMENT_DATABASE_PORT", 27017),
            database=provider.get("DOCUMENT_DATABASE_NAME", "system_config"),
            username=provider.get("DOCUMENT_DATABASE_USER"),
            password=provider.get("DOCUMENT_DATABASE_PASSWORD"),
        ),
        cache=CacheSettings(
            cache_type=provider.get("CACHE_TYPE", "inmemory"),
            url=provider.get("CACHE_URL", "redis://localhost:6379/0"),
            ttl_seconds=provider.get_int("CACHE_TTL_SECONDS", 300),
            negative_ttl_seconds=provider.get_int("CACHE_NEGATIVE_TTL_SECONDS", 30),
        ),
        delivery=DeliverySettings(
            failure_threshold=provider.get_int("FAILURE_THRESHOLD", 5),
            max_attempts=provider.get_int("DELIVERY_MAX_ATTEMPTS", 3),
            backoff=str(provider.get("DELIVERY_BACKOFF", "exponential")).lower(),
            base_delay_ms=provider.get_int("DELIVERY_BASE_DELAY_MS", 200),
            max_delay_ms=provider.get_int("DELIVERY_MAX_DELAY_MS", 5000),
            timeout_seconds=timeout_seconds,
            max_workers=provider.get_int("DELIVERY_MAX_WORKERS", 8),
        ),
        encryption_key=provider.get("ENCRYPTION_KEY"),
        encryption_key_secret=provider.get("ENCRYPTION_KEY_SECRET"),
        secret_provider_type=provider.get("SECRET_PROVIDER_TYPE", "env"),
        secrets_path=provider.get("SECRETS_PATH", "/run/secrets"),
        audit_retention_days=provider.get_int("AUDIT_RETENTION_DAYS", DEFAULT_AUDIT_RETENTION_DAYS),
    )
    config.validate()
    return config

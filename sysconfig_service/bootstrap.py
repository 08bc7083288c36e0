# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Wire the service components from a :class:`ServiceConfig`."""

from dataclasses import dataclass

from sysconfig_cache import Cache, create_cache
from sysconfig_config import ServiceConfig
from sysconfig_logging import Logger, create_logger
from sysconfig_metrics import MetricsCollector, create_metrics_collector
from sysconfig_secrets import SecretError, SecretProvider, create_secret_provider
from sysconfig_storage import DocumentStore, create_document_store

from .audit import AuditRecorder
from .config_versions import ConfigVersionStore
from .encryptor import Encryptor
from .errors import ConfigurationError
from .notifications import NotificationDispatcher
from .retry_policy import DeliveryPolicy
from .secret_vault import SecretVault


@dataclass
class ServiceContainer:
    """The running set of components behind the API."""

    store: DocumentStore
    cache: Cache | None
    audit: AuditRecorder
    configs: ConfigVersionStore
    secrets: SecretVault
    dispatcher: NotificationDispatcher
    logger: Logger
    metrics: MetricsCollector | None = None

    def close(self) -> None:
        self.dispatcher.close()
        self.store.disconnect()


def load_encryptor(config: ServiceConfig, secret_provider: SecretProvider | None = None) -> Encryptor:
    """Build the Encryptor from ENCRYPTION_KEY or the named bootstrap secret.

    Raises:
        ConfigurationError: If no key is available or the key is malformed
    """
    if config.encryption_key:
        return Encryptor.from_base64(config.encryption_key)

    if not config.encryption_key_secret:
        raise ConfigurationError("no encryption key configured")
    try:
        provider = secret_provider or create_secret_provider(
            config.secret_provider_type,
            **({"base_path": config.secrets_path} if config.secret_provider_type == "local" else {}),
        )
        encoded = provider.get_secret(config.encryption_key_secret)
    except SecretError as e:
        raise ConfigurationError(f"failed to load encryption key: {e}") from e
    return Encryptor.from_base64(encoded)


def build_services(
    config: ServiceConfig,
    store: DocumentStore | None = None,
    cache: Cache | None = None,
    secret_provider: SecretProvider | None = None,
    logger: Logger | None = None,
    metrics: MetricsCollector | None = None,
) -> ServiceContainer:
    """Create, connect and wire every component.

    Explicit arguments replace the components the config would create.
    """
    logger = logger or create_logger(
        logger_type=config.log_type, level=config.log_level, name=config.service_name
    )
    metrics = metrics or create_metrics_collector(config.metrics_backend)
    encryptor = load_encryptor(config, secret_provider)

    if store is None:
        settings = config.document_store
        store = create_document_store(
            store_type=settings.store_type,
            host=settings.host,
            port=settings.port,
            database=settings.database,
            username=settings.username,
            password=settings.password,
        )
    store.connect()

    if cache is None:
        cache_kwargs = {"url": config.cache.url} if config.cache.cache_type == "redis" else {}
        cache = create_cache(config.cache.cache_type, **cache_kwargs)

    delivery = config.delivery
    dispatcher = NotificationDispatcher(
        store,
        policy=DeliveryPolicy(
            max_attempts=delivery.max_attempts,
            backoff=delivery.backoff,
            base_delay_ms=delivery.base_delay_ms,
            max_delay_ms=delivery.max_delay_ms,
            timeout_seconds=delivery.timeout_seconds,
        ),
        failure_threshold=delivery.failure_threshold,
        max_workers=delivery.max_workers,
        logger=logger,
        metrics=metrics,
    )
    audit = AuditRecorder(store, logger=logger)
    configs = ConfigVersionStore(
        store,
        audit,
        cache=cache,
        change_listener=dispatcher.dispatch_async,
        logger=logger,
        metrics=metrics,
        cache_ttl_seconds=config.cache.ttl_seconds,
        negative_ttl_seconds=config.cache.negative_ttl_seconds,
    )
    secrets = SecretVault(
        store,
        encryptor,
        audit,
        change_listener=dispatcher.dispatch_async,
        logger=logger,
        metrics=metrics,
    )

    audit.ensure_indexes(config.audit_retention_days)
    configs.ensure_indexes()
    secrets.ensure_indexes()
    dispatcher.ensure_indexes()

    logger.info(
        "services_initialized",
        document_store=config.document_store.store_type,
        cache=config.cache.cache_type,
        encryption_key_id=encryptor.key_id,
    )
    return ServiceContainer(
        store=store,
        cache=cache,
        audit=audit,
        configs=configs,
        secrets=secrets,
        dispatcher=dispatcher,
        logger=logger,
        metrics=metrics,
    )

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Shared fixtures for the system config service tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from sysconfig_cache import InMemoryCache
from sysconfig_logging import SilentLogger
from sysconfig_metrics import NoOpMetricsCollector
from sysconfig_service import (
    AuditRecorder,
    ConfigVersionStore,
    DeliveryPolicy,
    Encryptor,
    NotificationDispatcher,
    SecretVault,
    WebhookSender,
    generate_key,
)
from sysconfig_storage import InMemoryDocumentStore


class FakeClock:
    """Controllable UTC clock; each call returns the current instant."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class TickingClock(FakeClock):
    """Clock that moves forward one millisecond on every read."""

    def __call__(self) -> datetime:
        self.current += timedelta(milliseconds=1)
        return self.current


@pytest.fixture
def store():
    """Connected in-memory document store."""
    doc_store = InMemoryDocumentStore()
    doc_store.connect()
    return doc_store


@pytest.fixture
def logger():
    return SilentLogger()


@pytest.fixture
def metrics():
    return NoOpMetricsCollector()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def audit(store, logger, clock):
    return AuditRecorder(store, logger=logger, now_fn=clock)


@pytest.fixture
def changes():
    """Collects change descriptors emitted by the stores."""
    return []


@pytest.fixture
def config_store(store, audit, cache, changes, logger, metrics, clock):
    return ConfigVersionStore(
        store,
        audit,
        cache=cache,
        change_listener=changes.append,
        logger=logger,
        metrics=metrics,
        now_fn=clock,
    )


@pytest.fixture
def encryptor():
    return Encryptor(generate_key())


@pytest.fixture
def vault(store, encryptor, audit, changes, logger, metrics, clock):
    return SecretVault(
        store,
        encryptor,
        audit,
        change_listener=changes.append,
        logger=logger,
        metrics=metrics,
        now_fn=clock,
    )


@pytest.fixture
def sender():
    """Webhook sender that succeeds unless told otherwise."""
    return Mock(spec=WebhookSender)


@pytest.fixture
def dispatcher(store, sender, logger, metrics):
    instance = NotificationDispatcher(
        store,
        sender=sender,
        policy=DeliveryPolicy(max_attempts=1, backoff="none"),
        failure_threshold=5,
        max_workers=4,
        logger=logger,
        metrics=metrics,
        sleep_fn=lambda seconds: None,
    )
    yield instance
    instance.close()

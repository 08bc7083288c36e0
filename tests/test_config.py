# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for configuration providers, service settings and secret providers."""

import pytest

from sysconfig_config import (
    EnvConfigProvider,
    ServiceConfig,
    ServiceConfigError,
    StaticConfigProvider,
    load_service_config,
)
from sysconfig_config.base import parse_bool
from sysconfig_secrets import (
    EnvSecretProvider,
    LocalFileSecretProvider,
    SecretNotFoundError,
    SecretProviderError,
    create_secret_provider,
)

BASE_SETTINGS = {"ENCRYPTION_KEY": "a2V5"}


class TestParseBool:
    """Tests for boolean parsing."""

    @pytest.mark.parametrize("value", ["true", "1", "YES", " on ", True])
    def test_true_values(self, value):
        assert parse_bool(value, False) is True

    @pytest.mark.parametrize("value", ["false", "0", "No", "off", False])
    def test_false_values(self, value):
        assert parse_bool(value, True) is False

    @pytest.mark.parametrize("value", [None, "maybe", 3])
    def test_fallback(self, value):
        assert parse_bool(value, True) is True


class TestEnvConfigProvider:
    """Tests for EnvConfigProvider."""

    def test_get(self):
        provider = EnvConfigProvider({"A": "1", "EMPTY": ""})

        assert provider.get("A") == "1"
        assert provider.get("EMPTY", "default") == "default"
        assert provider.get("MISSING", "default") == "default"

    def test_get_int(self):
        provider = EnvConfigProvider({"PORT": "8080", "BAD": "eighty"})

        assert provider.get_int("PORT") == 8080
        assert provider.get_int("BAD", 1) == 1
        assert provider.get_int("MISSING", 2) == 2

    def test_get_bool(self):
        provider = EnvConfigProvider({"ON": "true"})

        assert provider.get_bool("ON") is True
        assert provider.get_bool("MISSING", True) is True

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("SYSCONFIG_TEST_VALUE", "x")

        assert EnvConfigProvider().get("SYSCONFIG_TEST_VALUE") == "x"


class TestStaticConfigProvider:
    """Tests for StaticConfigProvider."""

    def test_values(self):
        provider = StaticConfigProvider({"N": 5, "S": "7", "B": "yes"})

        assert provider.get_int("N") == 5
        assert provider.get_int("S") == 7
        assert provider.get_bool("B") is True

    def test_set(self):
        provider = StaticConfigProvider()
        provider.set("KEY", "value")

        assert provider.get("KEY") == "value"


class TestLoadServiceConfig:
    """Tests for building ServiceConfig from a provider."""

    def test_defaults(self):
        config = load_service_config(StaticConfigProvider(dict(BASE_SETTINGS)))

        assert config.service_name == "system-config"
        assert config.http_port == 8000
        assert config.document_store.store_type == "inmemory"
        assert config.cache.ttl_seconds == 300
        assert config.cache.negative_ttl_seconds == 30
        assert config.delivery.failure_threshold == 5
        assert config.delivery.max_attempts == 3
        assert config.delivery.backoff == "exponential"
        assert config.audit_retention_days == 1825

    def test_overrides(self):
        config = load_service_config(EnvConfigProvider({
            "ENCRYPTION_KEY_SECRET": "system_config_encryption_key",
            "SECRET_PROVIDER_TYPE": "local",
            "SECRETS_PATH": "/secrets",
            "HTTP_PORT": "9000",
            "LOG_LEVEL": "debug",
            "DOCUMENT_STORE_TYPE": "mongodb",
            "DOCUMENT_DATABASE_HOST": "mongo",
            "DOCUMENT_DATABASE_USER": "svc",
            "CACHE_TYPE": "redis",
            "CACHE_URL": "redis://cache:6379/2",
            "FAILURE_THRESHOLD": "3",
            "DELIVERY_BACKOFF": "FIXED",
            "DELIVERY_TIMEOUT_SECONDS": "2.5",
            "AUDIT_RETENTION_DAYS": "30",
        }))

        assert config.encryption_key is None
        assert config.encryption_key_secret == "system_config_encryption_key"
        assert config.secret_provider_type == "local"
        assert config.http_port == 9000
        assert config.log_level == "DEBUG"
        assert config.document_store.host == "mongo"
        assert config.document_store.username == "svc"
        assert config.cache.url == "redis://cache:6379/2"
        assert config.delivery.failure_threshold == 3
        assert config.delivery.backoff == "fixed"
        assert config.delivery.timeout_seconds == 2.5
        assert config.audit_retention_days == 30

    @pytest.mark.parametrize(
        "settings",
        [
            {},
            {**BASE_SETTINGS, "FAILURE_THRESHOLD": 0},
            {**BASE_SETTINGS, "DELIVERY_MAX_ATTEMPTS": 0},
            {**BASE_SETTINGS, "DELIVERY_BACKOFF": "linear"},
            {**BASE_SETTINGS, "AUDIT_RETENTION_DAYS": 0},
            {**BASE_SETTINGS, "DELIVERY_TIMEOUT_SECONDS": "soon"},
        ],
    )
    def test_invalid_settings(self, settings):
        with pytest.raises(ServiceConfigError):
            load_service_config(StaticConfigProvider(settings))

    def test_validate_is_a_value_error(self):
        with pytest.raises(ValueError):
            ServiceConfig().validate()


class TestLocalFileSecretProvider:
    """Tests for file-mounted secrets."""

    def test_reads_and_strips(self, tmp_path):
        (tmp_path / "encryption_key").write_text("  c2VjcmV0\n")
        provider = LocalFileSecretProvider(base_path=str(tmp_path))

        assert provider.get_secret("encryption_key") == "c2VjcmV0"
        assert provider.secret_exists("encryption_key") is True
        assert provider.secret_exists("other") is False

    def test_missing_secret(self, tmp_path):
        provider = LocalFileSecretProvider(base_path=str(tmp_path))

        with pytest.raises(SecretNotFoundError):
            provider.get_secret("missing")

    def test_path_traversal_rejected(self, tmp_path):
        secrets_dir = tmp_path / "secrets"
        secrets_dir.mkdir()
        (tmp_path / "outside").write_text("nope")
        provider = LocalFileSecretProvider(base_path=str(secrets_dir))

        with pytest.raises(SecretProviderError, match="path traversal"):
            provider.get_secret("../outside")
        assert provider.secret_exists("../outside") is False

    def test_directory_is_not_a_secret(self, tmp_path):
        (tmp_path / "nested").mkdir()
        provider = LocalFileSecretProvider(base_path=str(tmp_path))

        with pytest.raises(SecretProviderError):
            provider.get_secret("nested")

    def test_base_path_must_exist(self, tmp_path):
        with pytest.raises(SecretProviderError):
            LocalFileSecretProvider(base_path=str(tmp_path / "absent"))

        file_path = tmp_path / "file"
        file_path.write_text("x")
        with pytest.raises(SecretProviderError):
            LocalFileSecretProvider(base_path=str(file_path))


class TestEnvSecretProvider:
    """Tests for environment-variable secrets."""

    def test_variable_naming(self):
        provider = EnvSecretProvider(prefix="sysconfig_", environ={"SYSCONFIG_ENCRYPTION_KEY": "k"})

        assert provider.get_secret("encryption-key") == "k"
        assert provider.secret_exists("encryption_key") is True

    def test_empty_value_is_missing(self):
        provider = EnvSecretProvider(environ={"ENCRYPTION_KEY": ""})

        with pytest.raises(SecretNotFoundError):
            provider.get_secret("encryption_key")
        assert provider.secret_exists("encryption_key") is False


class TestSecretProviderFactory:
    """Tests for create_secret_provider."""

    def test_local(self, tmp_path):
        assert isinstance(create_secret_provider("local", base_path=str(tmp_path)), LocalFileSecretProvider)

    def test_env(self):
        assert isinstance(create_secret_provider("env"), EnvSecretProvider)

    def test_unknown(self):
        with pytest.raises(SecretProviderError, match="Unknown provider type"):
            create_secret_provider("vault")

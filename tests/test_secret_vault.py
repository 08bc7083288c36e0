# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for encrypted secret storage."""

import threading

import pytest

from sysconfig_service import (
    MASKED_VALUE,
    ConflictError,
    Encryptor,
    InternalError,
    NotFoundError,
    Secret,
    ValidationError,
    generate_key,
)
from sysconfig_service.secret_vault import SECRETS_COLLECTION
from sysconfig_storage import DocumentStoreError


def new_secret(key="db.password", environment="production", **kwargs):
    return Secret(secret_key=key, environment=environment, **kwargs)


class TestCreate:
    """Tests for creating secrets."""

    def test_value_is_encrypted_at_rest(self, vault, store, encryptor):
        secret = vault.create(new_secret(), "hunter2", actor="alice")

        doc = store.get_document(SECRETS_COLLECTION, secret.id)
        assert doc["encrypted_value"]
        assert "hunter2" not in doc["encrypted_value"]
        assert encryptor.decrypt(doc["encrypted_value"]) == "hunter2"
        assert doc["encryption_key_id"] == encryptor.key_id
        assert secret.version == 1
        assert secret.status == "active"
        assert secret.created_by == "alice"

    def test_duplicate_conflicts(self, vault):
        vault.create(new_secret(), "one")

        with pytest.raises(ConflictError):
            vault.create(new_secret(), "two")

    def test_concurrent_creates_of_one_key(self, vault):
        """With indexes in place, racing creates of the same key store one secret."""
        vault.ensure_indexes()
        barrier = threading.Barrier(6)
        outcomes = []

        def create(n):
            barrier.wait()
            try:
                vault.create(new_secret(), f"value-{n}")
                outcomes.append("created")
            except ConflictError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=create, args=(n,)) for n in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("created") == 1
        assert outcomes.count("conflict") == 5

    @pytest.mark.parametrize(
        "secret,value",
        [
            (new_secret(key=""), "v"),
            (new_secret(environment="qa"), "v"),
            (new_secret(rotation_policy="weekly"), "v"),
            (new_secret(rotation_days=-1), "v"),
            (new_secret(), ""),
        ],
    )
    def test_invalid_input(self, vault, store, secret, value):
        with pytest.raises(ValidationError):
            vault.create(secret, value)

        assert store.count_documents(SECRETS_COLLECTION, {}) == 0

    def test_create_is_audited_without_value(self, vault, audit, changes):
        secret = vault.create(new_secret(), "hunter2", actor="alice")

        entries, total = audit.query(secret.id)
        assert total == 1
        assert entries[0].resource_type == "secret"
        assert entries[0].action == "create"
        assert entries[0].old_value is None
        assert entries[0].new_value is None

        change = changes[-1]
        assert change.change_type == "create"
        assert change.config_key == "db.password"
        assert change.old_value is None and change.new_value is None
        assert change.metadata["resource_type"] == "secret"


class TestMasking:
    """The plaintext and ciphertext never leak through display views."""

    def test_masked_view(self, vault):
        secret = vault.create(new_secret(), "hunter2")

        view = secret.masked()

        assert view["value"] == MASKED_VALUE
        assert "encrypted_value" not in view
        assert "hunter2" not in str(view)

    def test_serialization_excludes_ciphertext(self, vault):
        secret = vault.create(new_secret(), "hunter2")

        assert "encrypted_value" not in secret.model_dump()
        assert secret.encrypted_value not in repr(secret)

    def test_metadata_reads_carry_no_value(self, vault):
        created = vault.create(new_secret(), "hunter2")

        fetched = vault.get(created.id)
        items, total = vault.list_secrets(environment="production")

        assert "hunter2" not in str(fetched.masked())
        assert total == 1
        assert items[0].id == created.id

    def test_revealed_secret_repr_hides_value(self, vault):
        vault.create(new_secret(), "hunter2")

        revealed = vault.get_by_key(None, "production", "db.password")

        assert revealed.value == "hunter2"
        assert "hunter2" not in repr(revealed)


class TestRead:
    """Tests for reading secret values."""

    def test_read_counts_and_logs_access(self, vault, metrics):
        created = vault.create(new_secret(), "hunter2")

        first = vault.get_by_key(None, "production", "db.password", actor="svc", service_name="billing")
        second = vault.get_by_key(None, "production", "db.password")

        assert first.secret.access_count == 1
        assert second.secret.access_count == 2
        assert second.secret.last_accessed_at is not None

        logs, total = vault.get_access_logs(created.id)
        assert total == 3
        assert [entry.action for entry in logs] == ["read", "read", "create"]
        assert logs[1].user_id == "svc"
        assert logs[1].service_name == "billing"
        assert all(entry.success for entry in logs)
        assert metrics.get_counter_total("secret_access_total", {"action": "read", "outcome": "success"}) == 2

    def test_unknown_secret(self, vault, metrics):
        with pytest.raises(NotFoundError):
            vault.get_by_key(None, "production", "db.password")

        assert metrics.get_counter_total("secret_access_total", {"action": "read", "outcome": "not_found"}) == 1
        with pytest.raises(NotFoundError):
            vault.get("missing")

    def test_tenant_scoping(self, vault):
        vault.create(new_secret(tenant_id="acme"), "acme-pass")
        vault.create(new_secret(), "global-pass")

        assert vault.get_by_key("acme", "production", "db.password").value == "acme-pass"
        assert vault.get_by_key(None, "production", "db.password").value == "global-pass"

    def test_expired_secret_is_not_returned(self, vault, clock):
        from datetime import timedelta

        created = vault.create(new_secret(expires_at=clock.current + timedelta(hours=1)), "hunter2")
        assert vault.get_by_key(None, "production", "db.password").value == "hunter2"

        clock.advance(hours=2)

        with pytest.raises(NotFoundError):
            vault.get_by_key(None, "production", "db.password")
        assert vault.get(created.id).status == "expired"
        logs, _ = vault.get_access_logs(created.id)
        assert logs[0].success is False
        assert logs[0].fail_reason == "expired"

    def test_wrong_key_fails_closed(self, vault, logger):
        created = vault.create(new_secret(), "hunter2")
        vault.encryptor = Encryptor(generate_key())

        with pytest.raises(InternalError) as exc_info:
            vault.get_by_key(None, "production", "db.password")

        assert "hunter2" not in str(exc_info.value)
        assert logger.has_log("secret_decrypt_failed")
        assert vault.get(created.id).access_count == 0
        logs, _ = vault.get_access_logs(created.id)
        assert logs[0].fail_reason == "integrity_check_failed"

    def test_corrupted_ciphertext_fails_closed(self, vault, store):
        created = vault.create(new_secret(), "hunter2")
        doc = store.get_document(SECRETS_COLLECTION, created.id)
        store.update_document(SECRETS_COLLECTION, created.id, {"encrypted_value": doc["encrypted_value"][:10]})

        with pytest.raises(InternalError):
            vault.get_by_key(None, "production", "db.password")


class TestMutations:
    """Tests for update, rotate and delete."""

    def test_update_bumps_version(self, vault, changes):
        created = vault.create(new_secret(), "one")

        updated = vault.update(created.id, "two", actor="bob")

        assert updated.version == 2
        assert updated.updated_by == "bob"
        assert vault.get_by_key(None, "production", "db.password").value == "two"
        assert changes[-1].change_type == "update"
        assert changes[-1].version == 2

    def test_update_rejects_empty_value(self, vault):
        created = vault.create(new_secret(), "one")

        with pytest.raises(ValidationError):
            vault.update(created.id, "")
        with pytest.raises(NotFoundError):
            vault.update("missing", "x")

    def test_rotate(self, vault, changes, audit):
        created = vault.create(new_secret(rotation_policy="auto", rotation_days=30), "one")

        rotated = vault.rotate(created.id, "two")

        assert rotated.version == 2
        assert rotated.status == "active"
        assert rotated.last_rotated_at is not None
        assert vault.get_by_key(None, "production", "db.password").value == "two"
        assert changes[-1].change_type == "update"
        assert changes[-1].metadata["action"] == "rotate"
        entries, _ = audit.query(created.id)
        assert entries[0].action == "rotate"

    def test_failed_rotation_write_restores_status(self, vault, store, clock, monkeypatch):
        """A rotation whose value write fails leaves the secret active and still due."""
        created = vault.create(new_secret(rotation_policy="auto", rotation_days=1), "one")

        def increment_document(collection, doc_id, increments, patch=None):
            raise DocumentStoreError("disk full")

        monkeypatch.setattr(store, "increment_document", increment_document)

        with pytest.raises(InternalError):
            vault.rotate(created.id, "two")

        current = vault.get(created.id)
        assert current.status == "active"
        assert current.version == 1
        clock.advance(days=1)
        assert [s.id for s in vault.get_secrets_needing_rotation()] == [created.id]

    def test_delete_keeps_history(self, vault, changes, audit):
        created = vault.create(new_secret(), "one")

        vault.delete(created.id, actor="carol")

        with pytest.raises(NotFoundError):
            vault.get(created.id)
        with pytest.raises(NotFoundError):
            vault.delete(created.id)
        logs, total = vault.get_access_logs(created.id)
        assert total == 2
        assert logs[0].action == "delete"
        assert audit.query(created.id)[1] == 2
        assert changes[-1].change_type == "delete"


class TestRotationDue:
    """Tests for rotation scheduling."""

    def test_auto_secret_becomes_due_after_period(self, vault, clock):
        created = vault.create(new_secret(rotation_policy="auto", rotation_days=1), "one")

        assert vault.get_secrets_needing_rotation() == []

        clock.advance(days=1)

        due = vault.get_secrets_needing_rotation()
        assert [s.id for s in due] == [created.id]

    def test_rotation_resets_the_period(self, vault, clock):
        created = vault.create(new_secret(rotation_policy="auto", rotation_days=1), "one")
        clock.advance(days=2)

        vault.rotate(created.id, "two")

        assert vault.get_secrets_needing_rotation() == []
        clock.advance(days=1)
        assert [s.id for s in vault.get_secrets_needing_rotation()] == [created.id]

    def test_manual_and_zero_day_secrets_never_due(self, vault, clock):
        vault.create(new_secret(key="a.manual", rotation_days=1), "one")
        vault.create(new_secret(key="b.zero", rotation_policy="auto", rotation_days=0), "one")

        clock.advance(days=365)

        assert vault.get_secrets_needing_rotation() == []

    def test_due_count_is_published(self, vault, clock, metrics):
        vault.create(new_secret(key="a.auto", rotation_policy="auto", rotation_days=1), "one")
        vault.create(new_secret(key="b.auto", rotation_policy="auto", rotation_days=30), "one")

        vault.get_secrets_needing_rotation()
        assert metrics.get_gauge_value("secrets_rotation_due") == 0

        clock.advance(days=2)
        vault.get_secrets_needing_rotation()
        assert metrics.get_gauge_value("secrets_rotation_due") == 1

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Encrypted secret storage with access logging and rotation tracking.

Secrets are never cached and their plaintext is never persisted or logged.
Every action on a secret is written to ``secret_access_log``; mutations are
also written to the audit trail without values.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sysconfig_logging import Logger, create_logger
from sysconfig_metrics import MetricsCollector
from sysconfig_storage import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    DuplicateDocumentError,
)

from .audit import AuditRecorder
from .encryptor import Encryptor
from .errors import (
    ConflictError,
    IntegrityError,
    InternalError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from .models import (
    ROTATION_POLICIES,
    AuditLog,
    ConfigChangeNotification,
    RevealedSecret,
    Secret,
    SecretAccessLog,
    page_window,
    require_environment,
    require_key,
    resolve_actor,
    utcnow,
)

SECRETS_COLLECTION = "secrets"
ACCESS_LOG_COLLECTION = "secret_access_log"

ChangeListener = Callable[[ConfigChangeNotification], Any]


def _as_utc(value: datetime) -> datetime:
    # Stores without timezone support hand back naive UTC datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class SecretVault:
    """Secret entries encrypted at rest with an injected :class:`Encryptor`."""

    def __init__(
        self,
        store: DocumentStore,
        encryptor: Encryptor,
        audit: AuditRecorder,
        change_listener: ChangeListener | None = None,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.encryptor = encryptor
        self.audit = audit
        self.change_listener = change_listener
        self.logger = logger or create_logger(name="sysconfig_service.secret_vault")
        self.metrics = metrics
        self._now = now_fn

    def ensure_indexes(self) -> None:
        with storage_errors("secret index creation"):
            self.store.ensure_index(
                SECRETS_COLLECTION, ["tenant_id", "secret_key", "environment"], unique=True
            )
            self.store.ensure_index(ACCESS_LOG_COLLECTION, ["secret_id"])

    # Reads

    def get(self, secret_id: str) -> Secret:
        """Return secret metadata. The value is never included."""
        with storage_errors("secret lookup"):
            doc = self.store.get_document(SECRETS_COLLECTION, secret_id)
        if doc is None:
            raise NotFoundError(f"secret {secret_id} not found")
        return Secret.from_document(doc)

    def list_secrets(
        self,
        tenant_id: str | None = None,
        environment: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Secret], int]:
        skip, limit = page_window(page, per_page)
        filter_dict: dict[str, Any] = {}
        if tenant_id is not None:
            filter_dict["tenant_id"] = tenant_id
        if environment is not None:
            filter_dict["environment"] = require_environment(environment)

        with storage_errors("secret list"):
            docs = self.store.query_documents(
                SECRETS_COLLECTION, filter_dict, limit=limit, skip=skip, sort=[("secret_key", 1)]
            )
            total = self.store.count_documents(SECRETS_COLLECTION, filter_dict)
        return [Secret.from_document(doc) for doc in docs], total

    def get_by_key(
        self,
        tenant_id: str | None,
        environment: str,
        secret_key: str,
        actor: str | None = None,
        service_name: str = "",
    ) -> RevealedSecret:
        """Decrypt and return a secret, counting the access.

        Raises:
            NotFoundError: If the secret does not exist or has expired
            InternalError: If the stored ciphertext fails authentication
        """
        environment = require_environment(environment)
        secret_key = require_key(secret_key, "secret_key")
        actor = resolve_actor(actor)

        with storage_errors("secret lookup"):
            docs = self.store.query_documents(
                SECRETS_COLLECTION,
                {"tenant_id": tenant_id, "secret_key": secret_key, "environment": environment},
                limit=1,
            )
        if not docs:
            self._count_access("read", "not_found")
            raise NotFoundError(f"secret '{secret_key}' not found")
        secret = Secret.from_document(docs[0])
        now = self._now()

        if secret.status == "expired" or (
            secret.expires_at is not None and _as_utc(secret.expires_at) <= now
        ):
            if secret.status != "expired":
                with storage_errors("secret expiry"):
                    self.store.update_document(
                        SECRETS_COLLECTION, secret.id, {"status": "expired", "updated_at": now}
                    )
            self._log_access(secret, "read", actor, service_name, success=False, fail_reason="expired")
            self._count_access("read", "expired")
            raise NotFoundError(f"secret '{secret_key}' not found")

        try:
            plaintext = self.encryptor.decrypt(secret.encrypted_value)
        except IntegrityError:
            self._log_access(
                secret, "read", actor, service_name, success=False, fail_reason="integrity_check_failed"
            )
            self._count_access("read", "integrity_error")
            self.logger.error(
                "secret_decrypt_failed",
                secret_id=secret.id,
                secret_key=secret_key,
                encryption_key_id=secret.encryption_key_id,
            )
            raise InternalError("secret could not be read") from None

        with storage_errors("secret access count"):
            try:
                doc = self.store.increment_document(
                    SECRETS_COLLECTION, secret.id, {"access_count": 1}, {"last_accessed_at": now}
                )
            except DocumentNotFoundError:
                raise NotFoundError(f"secret '{secret_key}' not found") from None
        secret = Secret.from_document(doc)

        self._log_access(secret, "read", actor, service_name, success=True)
        self._count_access("read", "success")
        self.logger.debug("secret_read", secret_id=secret.id, secret_key=secret_key, user_id=actor)
        return RevealedSecret(secret=secret, value=plaintext)

    def get_access_logs(
        self, secret_id: str, page: int = 1, per_page: int = 20
    ) -> tuple[list[SecretAccessLog], int]:
        skip, limit = page_window(page, per_page)
        filter_dict = {"secret_id": secret_id}
        with storage_errors("secret access log query"):
            docs = self.store.query_documents(
                ACCESS_LOG_COLLECTION, filter_dict, limit=limit, skip=skip, sort=[("timestamp", -1)]
            )
            total = self.store.count_documents(ACCESS_LOG_COLLECTION, filter_dict)
        return [SecretAccessLog.from_document(doc) for doc in docs], total

    def get_secrets_needing_rotation(self) -> list[Secret]:
        """Return auto-rotated secrets whose rotation period has elapsed.

        The period is counted in whole days from ``last_rotated_at``, or from
        ``created_at`` for a secret that has never been rotated.
        """
        with storage_errors("rotation query"):
            docs = self.store.query_documents(
                SECRETS_COLLECTION,
                {"rotation_policy": "auto", "status": "active", "rotation_days": {"$gt": 0}},
                limit=0,
            )
        now = self._now()
        due = []
        for doc in docs:
            secret = Secret.from_document(doc)
            reference = _as_utc(secret.last_rotated_at or secret.created_at)
            if (now - reference).days >= secret.rotation_days:
                due.append(secret)
        if self.metrics:
            self.metrics.gauge("secrets_rotation_due", len(due))
        return due

    # Writes

    def create(self, secret: Secret, plaintext_value: str, actor: str | None = None) -> Secret:
        """Encrypt and store a new secret at version 1.

        Raises:
            ValidationError: On a missing key, unknown environment or rotation
                policy, negative rotation_days, or empty value
            ConflictError: If (tenant_id, secret_key, environment) already exists
        """
        secret_key = require_key(secret.secret_key, "secret_key")
        environment = require_environment(secret.environment)
        if secret.rotation_policy not in ROTATION_POLICIES:
            raise ValidationError(
                f"invalid rotation_policy '{secret.rotation_policy}'; "
                f"must be one of {', '.join(ROTATION_POLICIES)}"
            )
        if secret.rotation_days < 0:
            raise ValidationError("rotation_days must not be negative")
        if not plaintext_value:
            raise ValidationError("secret value is required")
        actor = resolve_actor(actor)
        now = self._now()

        stored = secret.model_copy(update={
            "secret_key": secret_key,
            "environment": environment,
            "encrypted_value": self.encryptor.encrypt(plaintext_value),
            "encryption_key_id": self.encryptor.key_id,
            "version": 1,
            "status": "active",
            "access_count": 0,
            "last_accessed_at": None,
            "created_at": now,
            "updated_at": now,
            "created_by": actor,
            "updated_by": actor,
        })

        with storage_errors("secret create"):
            existing = self.store.count_documents(
                SECRETS_COLLECTION,
                {"tenant_id": stored.tenant_id, "secret_key": secret_key, "environment": environment},
            )
            if existing:
                raise ConflictError(f"secret '{secret_key}' already exists in {environment}")
            try:
                self.store.insert_document(SECRETS_COLLECTION, stored.to_document())
            except DuplicateDocumentError:
                raise ConflictError(
                    f"secret '{secret_key}' already exists in {environment}"
                ) from None

        self._record_mutation(stored, "create", actor, details={"version": 1})
        self.logger.info(
            "secret_created",
            secret_id=stored.id,
            secret_key=secret_key,
            environment=environment,
            tenant_id=stored.tenant_id,
            created_by=actor,
        )
        return stored

    def update(self, secret_id: str, new_plaintext: str, actor: str | None = None) -> Secret:
        """Replace the secret value, bumping its version.

        Raises:
            NotFoundError: If the secret does not exist
            ValidationError: If the new value is empty
        """
        if not new_plaintext:
            raise ValidationError("secret value is required")
        actor = resolve_actor(actor)
        secret = self.get(secret_id)

        updated = self._write_value(secret, new_plaintext, actor, {})
        self._record_mutation(updated, "update", actor, details={"version": updated.version})
        self.logger.info(
            "secret_updated", secret_id=secret_id, secret_key=secret.secret_key, version=updated.version
        )
        return updated

    def rotate(self, secret_id: str, new_plaintext: str, actor: str | None = None) -> Secret:
        """Replace the secret value as a rotation.

        The secret is marked ``rotated`` while the new ciphertext is written
        and returns to ``active`` with ``last_rotated_at`` set. If the write
        fails the previous status is put back.
        """
        if not new_plaintext:
            raise ValidationError("secret value is required")
        actor = resolve_actor(actor)
        secret = self.get(secret_id)
        now = self._now()

        with storage_errors("secret rotation"):
            self.store.update_document(
                SECRETS_COLLECTION, secret_id, {"status": "rotated", "updated_at": now}
            )
        try:
            rotated = self._write_value(
                secret, new_plaintext, actor, {"status": "active", "last_rotated_at": now}
            )
        except Exception:
            self._restore_status(secret)
            raise
        self._record_mutation(
            rotated,
            "rotate",
            actor,
            details={"version": rotated.version},
            change_metadata={"action": "rotate"},
        )
        self.logger.info(
            "secret_rotated", secret_id=secret_id, secret_key=secret.secret_key, version=rotated.version
        )
        return rotated

    def delete(self, secret_id: str, actor: str | None = None) -> None:
        """Remove a secret permanently. Its access log and audit rows remain."""
        actor = resolve_actor(actor)
        secret = self.get(secret_id)
        with storage_errors("secret delete"):
            try:
                self.store.delete_document(SECRETS_COLLECTION, secret_id)
            except DocumentNotFoundError:
                raise NotFoundError(f"secret {secret_id} not found") from None

        self._record_mutation(secret, "delete", actor, details={"version": secret.version})
        self.logger.info("secret_deleted", secret_id=secret_id, secret_key=secret.secret_key, deleted_by=actor)

    # Internals

    def _restore_status(self, secret: Secret) -> None:
        """Put back the status a failed rotation replaced with ``rotated``."""
        try:
            self.store.update_document(SECRETS_COLLECTION, secret.id, {"status": secret.status})
        except DocumentStoreError as e:
            self.logger.error("secret_status_restore_failed", secret_id=secret.id, error=str(e))

    def _write_value(
        self, secret: Secret, plaintext: str, actor: str, extra: dict[str, Any]
    ) -> Secret:
        patch = {
            "encrypted_value": self.encryptor.encrypt(plaintext),
            "encryption_key_id": self.encryptor.key_id,
            "updated_at": self._now(),
            "updated_by": actor,
            **extra,
        }
        with storage_errors("secret write"):
            try:
                doc = self.store.increment_document(SECRETS_COLLECTION, secret.id, {"version": 1}, patch)
            except DocumentNotFoundError:
                raise NotFoundError(f"secret {secret.id} not found") from None
        return Secret.from_document(doc)

    def _record_mutation(
        self,
        secret: Secret,
        action: str,
        actor: str,
        details: dict[str, Any],
        change_metadata: dict[str, Any] | None = None,
    ) -> None:
        self._log_access(secret, action, actor, "", success=True, details=details)
        self._count_access(action, "success")
        self.audit.append(
            AuditLog(
                resource_type="secret",
                resource_id=secret.id,
                resource_key=secret.secret_key,
                tenant_id=secret.tenant_id,
                environment=secret.environment,
                action=action,
                user_id=actor,
                details=details,
            )
        )
        change_type = {"create": "create", "delete": "delete"}.get(action, "update")
        self._emit(secret, change_type, actor, change_metadata or {})

    def _log_access(
        self,
        secret: Secret,
        action: str,
        actor: str,
        service_name: str,
        success: bool,
        fail_reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = SecretAccessLog(
            secret_id=secret.id,
            secret_key=secret.secret_key,
            tenant_id=secret.tenant_id,
            environment=secret.environment,
            user_id=actor,
            service_name=service_name,
            action=action,
            success=success,
            fail_reason=fail_reason,
            details=details or {},
            timestamp=self._now(),
        )
        with storage_errors("secret access log"):
            self.store.insert_document(ACCESS_LOG_COLLECTION, entry.to_document())

    def _count_access(self, action: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment("secret_access_total", tags={"action": action, "outcome": outcome})

    def _emit(self, secret: Secret, change_type: str, actor: str, metadata: dict[str, Any]) -> None:
        if self.change_listener is None:
            return
        change = ConfigChangeNotification(
            config_key=secret.secret_key,
            tenant_id=secret.tenant_id,
            environment=secret.environment,
            old_value=None,
            new_value=None,
            version=secret.version,
            change_type=change_type,
            changed_by=actor,
            timestamp=self._now(),
            metadata={"resource_type": "secret", "secret_id": secret.id, **metadata},
        )
        try:
            self.change_listener(change)
        except Exception as e:
            self.logger.error(
                "change_listener_failed",
                secret_key=secret.secret_key,
                change_type=change_type,
                error=str(e),
            )

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Append-only audit trail for config and secret mutations."""

from collections.abc import Callable
from datetime import datetime

from sysconfig_logging import Logger, create_logger
from sysconfig_storage import DocumentStore

from .errors import ValidationError, storage_errors
from .models import AuditLog, page_window, utcnow

AUDIT_COLLECTION = "config_audit_log"


class AuditRecorder:
    """Writes and reads audit entries.

    The recorder exposes no update or delete operation. Expiry is left to a
    TTL index on ``timestamp`` (see :meth:`ensure_indexes`).
    """

    def __init__(
        self,
        store: DocumentStore,
        logger: Logger | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.logger = logger or create_logger(name="sysconfig_service.audit")
        self._now = now_fn

    def ensure_indexes(self, retention_days: int) -> None:
        with storage_errors("audit index creation"):
            self.store.ensure_index(AUDIT_COLLECTION, ["resource_id"])
            self.store.ensure_index(
                AUDIT_COLLECTION, ["timestamp"], expire_after_seconds=retention_days * 86400
            )

    def append(self, entry: AuditLog) -> AuditLog:
        """Stamp and persist an audit entry.

        Raises:
            ValidationError: If resource_type, resource_id or action is empty
        """
        for field in ("resource_type", "resource_id", "action"):
            if not getattr(entry, field):
                raise ValidationError(f"audit entry {field} is required")

        stored = entry.model_copy(update={"timestamp": self._now()})
        with storage_errors("audit append"):
            self.store.insert_document(AUDIT_COLLECTION, stored.to_document())

        self.logger.debug(
            "audit_appended",
            resource_type=stored.resource_type,
            resource_id=stored.resource_id,
            action=stored.action,
            user_id=stored.user_id,
        )
        return stored

    def query(self, resource_id: str, page: int = 1, per_page: int = 20) -> tuple[list[AuditLog], int]:
        """Return one page of entries for a resource, newest first, and the total count."""
        skip, limit = page_window(page, per_page)
        filter_dict = {"resource_id": resource_id}
        with storage_errors("audit query"):
            docs = self.store.query_documents(
                AUDIT_COLLECTION, filter_dict, limit=limit, skip=skip, sort=[("timestamp", -1)]
            )
            total = self.store.count_documents(AUDIT_COLLECTION, filter_dict)
        return [AuditLog.from_document(doc) for doc in docs], total

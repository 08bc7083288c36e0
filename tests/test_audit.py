# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for the audit trail."""

from unittest.mock import Mock, call

import pytest

from sysconfig_service import AuditLog, AuditRecorder, InternalError, ValidationError
from sysconfig_service.audit import AUDIT_COLLECTION
from sysconfig_storage import DocumentStoreError


def entry(resource_id="cfg-1", action="update", **kwargs):
    return AuditLog(resource_type="config", resource_id=resource_id, action=action, **kwargs)


class TestAuditRecorder:
    """Tests for appending and querying audit entries."""

    def test_append_stamps_timestamp(self, audit, clock):
        stored = audit.append(entry(user_id="alice", old_value=1, new_value=2))

        assert stored.timestamp == clock.current
        entries, total = audit.query("cfg-1")
        assert total == 1
        assert entries[0].user_id == "alice"
        assert (entries[0].old_value, entries[0].new_value) == (1, 2)

    def test_caller_timestamp_is_ignored(self, audit, clock):
        from datetime import datetime, timezone

        stored = audit.append(entry(timestamp=datetime(2000, 1, 1, tzinfo=timezone.utc)))

        assert stored.timestamp == clock.current

    @pytest.mark.parametrize("field", ["resource_type", "resource_id", "action"])
    def test_required_fields(self, audit, store, field):
        bad = entry().model_copy(update={field: ""})

        with pytest.raises(ValidationError):
            audit.append(bad)
        assert store.count_documents(AUDIT_COLLECTION, {}) == 0

    def test_query_newest_first_with_paging(self, audit):
        for action in ("create", "update", "activate", "rollback", "delete"):
            audit.append(entry(action=action))
        audit.append(entry(resource_id="other"))

        first, total = audit.query("cfg-1", page=1, per_page=2)
        second, _ = audit.query("cfg-1", page=2, per_page=2)
        last, _ = audit.query("cfg-1", page=3, per_page=2)

        assert total == 5
        assert [e.action for e in first] == ["delete", "rollback"]
        assert [e.action for e in second] == ["activate", "update"]
        assert [e.action for e in last] == ["create"]

    def test_no_mutation_api(self, audit):
        assert not hasattr(audit, "update")
        assert not hasattr(audit, "delete")

    def test_ensure_indexes_sets_retention(self, logger):
        store = Mock()
        recorder = AuditRecorder(store, logger=logger)

        recorder.ensure_indexes(retention_days=30)

        store.ensure_index.assert_has_calls([
            call(AUDIT_COLLECTION, ["resource_id"]),
            call(AUDIT_COLLECTION, ["timestamp"], expire_after_seconds=30 * 86400),
        ])

    def test_storage_failures_are_internal_errors(self, logger):
        store = Mock()
        store.insert_document.side_effect = DocumentStoreError("disk full")
        recorder = AuditRecorder(store, logger=logger)

        with pytest.raises(InternalError):
            recorder.append(entry())

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Versioned configuration entries.

Every config document carries an activation marker: ``active_version`` (the
version being served) and ``activation_seq`` (incremented on every change of
``active_version``). Activation, immediate updates and rollbacks move the
marker with a single compare-and-swap on the config document. Version rows
are then *settled*: each row records the highest ``activation_seq`` it has
been settled against, and settlement only touches rows holding an older
sequence, so concurrent settlements converge on the latest marker and leave
exactly one row with ``is_active`` set.
New version rows are inserted before the swap and removed again when the
swap does not land.
"""

from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

from sysconfig_cache import Cache, CacheError, cache_key
from sysconfig_logging import Logger, create_logger
from sysconfig_metrics import MetricsCollector
from sysconfig_storage import DocumentStore, DocumentStoreError, DuplicateDocumentError

from .audit import AuditRecorder
from .errors import ConflictError, NotFoundError, ValidationError, storage_errors
from .models import (
    AuditLog,
    Config,
    ConfigChangeNotification,
    ConfigValue,
    ConfigVersion,
    VersionDiff,
    page_window,
    require_environment,
    require_key,
    resolve_actor,
    utcnow,
)

CONFIGS_COLLECTION = "configs"
VERSIONS_COLLECTION = "config_versions"

_MISSING_MARKER = {"__missing__": True}
ROOT_PATH = "$"

ChangeListener = Callable[[ConfigChangeNotification], Any]


def structural_diff(old: Any, new: Any, prefix: str = "") -> tuple[dict, dict, dict]:
    """Diff two JSON documents into (added, removed, changed) keyed by dotted path.

    Nested objects are walked recursively; lists and scalars compare as
    whole values. Differences at the top level of non-object values are
    reported under ``$``.
    """
    added: dict[str, Any] = {}
    removed: dict[str, Any] = {}
    changed: dict[str, dict[str, Any]] = {}

    if isinstance(old, dict) and isinstance(new, dict):
        for key in old.keys() | new.keys():
            path = f"{prefix}.{key}" if prefix else str(key)
            if key not in old:
                added[path] = new[key]
            elif key not in new:
                removed[path] = old[key]
            elif isinstance(old[key], dict) and isinstance(new[key], dict):
                a, r, c = structural_diff(old[key], new[key], path)
                added.update(a)
                removed.update(r)
                changed.update(c)
            elif old[key] != new[key]:
                changed[path] = {"old": old[key], "new": new[key]}
    elif old != new:
        changed[prefix or ROOT_PATH] = {"old": old, "new": new}

    return added, removed, changed


class VersionHistory:
    """Lazy, restartable view over a config's versions, newest first.

    Each iteration pages through the store using the version number as the
    cursor, so rows are never skipped or repeated while new versions are
    being appended.
    """

    def __init__(self, store: DocumentStore, config_id: str, page_size: int = 50):
        self.store = store
        self.config_id = config_id
        self.page_size = page_size

    def __iter__(self) -> Iterator[ConfigVersion]:
        cursor: int | None = None
        while True:
            filter_dict: dict[str, Any] = {"config_id": self.config_id}
            if cursor is not None:
                filter_dict["version_number"] = {"$lt": cursor}
            with storage_errors("version history"):
                docs = self.store.query_documents(
                    VERSIONS_COLLECTION,
                    filter_dict,
                    limit=self.page_size,
                    sort=[("version_number", -1)],
                )
            for doc in docs:
                yield ConfigVersion.from_document(doc)
            if len(docs) < self.page_size:
                return
            cursor = docs[-1]["version_number"]


class ConfigVersionStore:
    """Configuration entries, their version history and activation."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditRecorder,
        cache: Cache | None = None,
        change_listener: ChangeListener | None = None,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
        cache_ttl_seconds: int = 300,
        negative_ttl_seconds: int = 30,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.audit = audit
        self.cache = cache
        self.change_listener = change_listener
        self.logger = logger or create_logger(name="sysconfig_service.config_versions")
        self.metrics = metrics
        self.cache_ttl_seconds = cache_ttl_seconds
        self.negative_ttl_seconds = negative_ttl_seconds
        self._now = now_fn

    def ensure_indexes(self) -> None:
        with storage_errors("config index creation"):
            self.store.ensure_index(
                CONFIGS_COLLECTION, ["tenant_id", "config_key", "environment"], unique=True
            )
            self.store.ensure_index(VERSIONS_COLLECTION, ["config_id", "version_number"], unique=True)

    # Reads

    def get(self, config_id: str) -> Config:
        with storage_errors("config lookup"):
            doc = self.store.get_document(CONFIGS_COLLECTION, config_id)
        if doc is None:
            raise NotFoundError(f"config {config_id} not found")
        return Config.from_document(doc)

    def get_by_key(self, tenant_id: str | None, environment: str, config_key: str) -> Config:
        """Look up a live config by its natural key, read-through the cache.

        Confirmed misses are cached for ``negative_ttl_seconds``.
        """
        environment = require_environment(environment)
        config_key = require_key(config_key, "config_key")
        key = cache_key("config", tenant_id, environment, config_key)

        cached = self._cache_get(key)
        if cached == _MISSING_MARKER:
            raise NotFoundError(f"config '{config_key}' not found")
        if cached is not None:
            return Config.model_validate(cached)

        with storage_errors("config lookup"):
            docs = self.store.query_documents(
                CONFIGS_COLLECTION,
                {
                    "tenant_id": tenant_id,
                    "config_key": config_key,
                    "environment": environment,
                    "status": {"$ne": "archived"},
                },
                limit=1,
            )
        if not docs:
            self._cache_set(key, _MISSING_MARKER, self.negative_ttl_seconds)
            raise NotFoundError(f"config '{config_key}' not found")

        config = Config.from_document(docs[0])
        self._cache_set(key, config.model_dump(mode="json"), self.cache_ttl_seconds)
        return config

    def list_configs(
        self,
        tenant_id: str | None = None,
        environment: str | None = None,
        status: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Config], int]:
        """Page through configs. Archived entries are hidden unless asked for by status."""
        skip, limit = page_window(page, per_page)
        filter_dict: dict[str, Any] = {}
        if tenant_id is not None:
            filter_dict["tenant_id"] = tenant_id
        if environment is not None:
            filter_dict["environment"] = require_environment(environment)
        filter_dict["status"] = status if status else {"$ne": "archived"}

        with storage_errors("config list"):
            docs = self.store.query_documents(
                CONFIGS_COLLECTION, filter_dict, limit=limit, skip=skip, sort=[("config_key", 1)]
            )
            total = self.store.count_documents(CONFIGS_COLLECTION, filter_dict)
        return [Config.from_document(doc) for doc in docs], total

    def get_version(self, config_id: str, version_number: int) -> ConfigVersion:
        with storage_errors("version lookup"):
            doc = self.store.get_document(
                VERSIONS_COLLECTION, ConfigVersion.document_id(config_id, version_number)
            )
        if doc is None:
            raise NotFoundError(f"version {version_number} of config {config_id} not found")
        return ConfigVersion.from_document(doc)

    def get_history(self, config_id: str, page_size: int = 50) -> VersionHistory:
        """Return the version history, newest first.

        Raises:
            NotFoundError: If the config does not exist
        """
        self.get(config_id)
        return VersionHistory(self.store, config_id, page_size=page_size)

    def compare_versions(self, config_id: str, version_a: int, version_b: int) -> VersionDiff:
        """Diff the values of two versions (``version_a`` is the baseline)."""
        first = self.get_version(config_id, version_a)
        second = self.get_version(config_id, version_b)

        if first.value.content_type == second.value.content_type == "json":
            added, removed, changed = structural_diff(first.value.data, second.value.data)
        else:
            added, removed, changed = structural_diff(first.value.model_dump(), second.value.model_dump())

        return VersionDiff(
            config_id=config_id,
            version_a=first,
            version_b=second,
            added=added,
            removed=removed,
            changed=changed,
        )

    def get_audit_logs(self, config_id: str, page: int = 1, per_page: int = 20) -> tuple[list[AuditLog], int]:
        return self.audit.query(config_id, page=page, per_page=per_page)

    # Writes

    def create(
        self,
        config_key: str,
        value: Any,
        environment: str,
        tenant_id: str | None = None,
        actor: str | None = None,
        description: str = "",
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Config:
        """Create a config at version 1, active and served.

        Raises:
            ValidationError: On a missing key, unknown environment or bad value
            ConflictError: If (tenant_id, config_key, environment) already exists
        """
        config_key = require_key(config_key, "config_key")
        environment = require_environment(environment)
        config_value = ConfigValue.coerce(value)
        actor = resolve_actor(actor)
        now = self._now()

        with storage_errors("config create"):
            existing = self.store.count_documents(
                CONFIGS_COLLECTION,
                {"tenant_id": tenant_id, "config_key": config_key, "environment": environment},
            )
        if existing:
            raise ConflictError(f"config '{config_key}' already exists in {environment}")

        config = Config(
            tenant_id=tenant_id,
            config_key=config_key,
            environment=environment,
            value=config_value,
            description=description,
            tags=list(tags or []),
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
            created_by=actor,
            updated_by=actor,
        )
        first_version = self._new_version(
            config, 1, config_value, actor, "Initial version", active=True, activation_seq=1
        )

        with storage_errors("config create"):
            self.store.insert_document(VERSIONS_COLLECTION, first_version.to_document())
            try:
                self.store.insert_document(CONFIGS_COLLECTION, config.to_document())
            except DuplicateDocumentError:
                self.store.delete_document(VERSIONS_COLLECTION, first_version.id)
                raise ConflictError(
                    f"config '{config_key}' already exists in {environment}"
                ) from None

        self._audit(config, "create", actor, new_value=config_value.model_dump())
        self._invalidate(config)
        self._emit(config, "create", actor, version=1, new_value=config_value)
        self.logger.info(
            "config_created",
            config_id=config.id,
            config_key=config_key,
            environment=environment,
            tenant_id=tenant_id,
            created_by=actor,
        )
        return config

    def update(
        self,
        config_id: str,
        new_value: Any,
        actor: str | None = None,
        reason: str = "",
        activate: bool = True,
    ) -> ConfigVersion:
        """Record a new version.

        By default the new version becomes the served value in the same
        write. With ``activate=False`` the version is staged as a draft and
        the served value is unchanged until :meth:`activate_version`.

        Raises:
            NotFoundError: If the config does not exist
            ValidationError: If the config is archived or the value is invalid
            ConflictError: If another writer changed the config concurrently
        """
        config_value = ConfigValue.coerce(new_value)
        actor = resolve_actor(actor)
        config = self.get(config_id)
        if config.status == "archived":
            raise ValidationError(f"config {config_id} is archived")

        version_number = config.version + 1
        now = self._now()
        expected: dict[str, Any] = {
            "version": config.version,
            "status": {"$ne": "archived"},
        }
        patch: dict[str, Any] = {
            "version": version_number,
            "updated_at": now,
            "updated_by": actor,
        }
        activation_seq = 0
        if activate:
            activation_seq = config.activation_seq + 1
            expected["activation_seq"] = config.activation_seq
            patch.update({
                "active_version": version_number,
                "activation_seq": activation_seq,
                "value": config_value.model_dump(),
            })

        version = self._new_version(
            config,
            version_number,
            config_value,
            actor,
            reason or f"Updated to version {version_number}",
            active=False,
            activation_seq=0,
        )
        with storage_errors("config update"):
            self._allocate_version(version, expected, patch)
            if activate:
                self._settle(config_id)
        if activate:
            version = version.model_copy(
                update={"status": "active", "is_active": True, "activation_seq": activation_seq}
            )

        self._audit(
            config,
            "update",
            actor,
            old_value=config.value.model_dump(),
            new_value=config_value.model_dump(),
            details={"version": version_number, "staged": not activate, "reason": reason},
        )
        if activate:
            self._invalidate(config)
            self._emit(
                config,
                "update",
                actor,
                version=version_number,
                old_value=config.value,
                new_value=config_value,
            )
        self.logger.info(
            "config_updated",
            config_id=config_id,
            config_key=config.config_key,
            old_version=config.version,
            new_version=version_number,
            staged=not activate,
            updated_by=actor,
        )
        return version

    def activate_version(self, config_id: str, version_number: int, actor: str | None = None) -> Config:
        """Make ``version_number`` the served version.

        Activating the version that is already served writes one audit
        record and changes nothing else.

        Raises:
            NotFoundError: If the config or version does not exist
            ValidationError: If the config or version is archived
            ConflictError: If the activation marker moved concurrently
        """
        actor = resolve_actor(actor)
        config = self.get(config_id)
        if config.status == "archived":
            raise ValidationError(f"config {config_id} is archived")
        target = self.get_version(config_id, version_number)
        if target.status == "archived":
            raise ValidationError(f"version {version_number} is archived and cannot be activated")

        if config.active_version == version_number:
            self._audit(
                config,
                "activate",
                actor,
                old_value=config.value.model_dump(),
                new_value=config.value.model_dump(),
                details={"version": version_number, "already_active": True},
            )
            return config

        activation_seq = config.activation_seq + 1
        with storage_errors("version activation"):
            applied = self.store.update_document_if(
                CONFIGS_COLLECTION,
                config_id,
                {"activation_seq": config.activation_seq, "status": {"$ne": "archived"}},
                {
                    "active_version": version_number,
                    "activation_seq": activation_seq,
                    "value": target.value.model_dump(),
                    "updated_at": self._now(),
                    "updated_by": actor,
                },
            )
            if not applied:
                raise ConflictError(f"config {config_id} was activated concurrently")
            self._settle(config_id)

        self._audit(
            config,
            "activate",
            actor,
            old_value=config.value.model_dump(),
            new_value=target.value.model_dump(),
            details={"from_version": config.active_version, "to_version": version_number},
        )
        self._invalidate(config)
        self._emit(
            config,
            "activate",
            actor,
            version=version_number,
            old_value=config.value,
            new_value=target.value,
        )
        if self.metrics:
            self.metrics.increment("config_activations_total", tags={"environment": config.environment})
        self.logger.info(
            "config_version_activated",
            config_id=config_id,
            config_key=config.config_key,
            from_version=config.active_version,
            to_version=version_number,
            activated_by=actor,
        )
        return self.get(config_id)

    def rollback(
        self,
        config_id: str,
        target_version: int,
        actor: str | None = None,
        reason: str = "",
    ) -> ConfigVersion:
        """Serve an earlier value again as a brand-new version.

        The new version is numbered after the latest one; old rows are never
        reactivated or renumbered.

        Raises:
            NotFoundError: If the config or target version does not exist
            ValidationError: If the config is archived
            ConflictError: If another writer changed the config concurrently
        """
        actor = resolve_actor(actor)
        config = self.get(config_id)
        if config.status == "archived":
            raise ValidationError(f"config {config_id} is archived")
        target = self.get_version(config_id, target_version)

        version_number = config.version + 1
        activation_seq = config.activation_seq + 1
        version = self._new_version(
            config,
            version_number,
            target.value,
            actor,
            reason or f"Rollback to version {target_version}",
            active=False,
            activation_seq=0,
            metadata={"rolled_back_from": target_version},
        )
        with storage_errors("config rollback"):
            self._allocate_version(
                version,
                {
                    "version": config.version,
                    "activation_seq": config.activation_seq,
                    "status": {"$ne": "archived"},
                },
                {
                    "version": version_number,
                    "active_version": version_number,
                    "activation_seq": activation_seq,
                    "value": target.value.model_dump(),
                    "updated_at": self._now(),
                    "updated_by": actor,
                },
            )
            self._settle(config_id)
        version = version.model_copy(
            update={"status": "active", "is_active": True, "activation_seq": activation_seq}
        )

        self._audit(
            config,
            "rollback",
            actor,
            old_value=config.value.model_dump(),
            new_value=target.value.model_dump(),
            details={"target_version": target_version, "new_version": version_number, "reason": reason},
        )
        self._invalidate(config)
        self._emit(
            config,
            "rollback",
            actor,
            version=version_number,
            old_value=config.value,
            new_value=target.value,
            metadata={"rolled_back_from": target_version},
        )
        self.logger.info(
            "config_rolled_back",
            config_id=config_id,
            config_key=config.config_key,
            target_version=target_version,
            new_version=version_number,
            rolled_back_by=actor,
        )
        return version

    def delete(self, config_id: str, actor: str | None = None) -> None:
        """Archive a config and every one of its versions.

        Raises:
            NotFoundError: If the config does not exist or is already archived
        """
        actor = resolve_actor(actor)
        config = self.get(config_id)

        with storage_errors("config delete"):
            archived = self.store.update_document_if(
                CONFIGS_COLLECTION,
                config_id,
                {"status": {"$ne": "archived"}},
                {"status": "archived", "updated_at": self._now(), "updated_by": actor},
            )
            if not archived:
                raise NotFoundError(f"config {config_id} not found")
            self.store.update_documents(
                VERSIONS_COLLECTION,
                {"config_id": config_id},
                {"status": "archived", "is_active": False},
            )

        self._audit(config, "delete", actor, old_value=config.value.model_dump())
        self._invalidate(config)
        self._emit(config, "delete", actor, version=config.active_version, old_value=config.value)
        self.logger.info(
            "config_deleted",
            config_id=config_id,
            config_key=config.config_key,
            deleted_by=actor,
        )

    # Internals

    def _new_version(
        self,
        config: Config,
        version_number: int,
        value: ConfigValue,
        actor: str,
        reason: str,
        active: bool,
        activation_seq: int,
        metadata: dict[str, Any] | None = None,
    ) -> ConfigVersion:
        return ConfigVersion(
            id=ConfigVersion.document_id(config.id, version_number),
            config_id=config.id,
            version_number=version_number,
            tenant_id=config.tenant_id,
            config_key=config.config_key,
            environment=config.environment,
            value=value,
            change_reason=reason,
            status="active" if active else "draft",
            is_active=active,
            activation_seq=activation_seq,
            metadata=dict(metadata or {}),
            created_at=self._now(),
            created_by=actor,
        )

    def _allocate_version(
        self, version: ConfigVersion, expected: dict[str, Any], patch: dict[str, Any]
    ) -> None:
        """Claim a new version number for a config.

        The version row goes in first: its id is derived from the number, so
        a concurrent writer allocating the same number collides on insert.
        Only then is the config document moved with a compare-and-swap. A
        row whose swap does not land is deleted again, so a config never
        points at a version without a row.

        Raises:
            ConflictError: If another writer took the number or moved the config
            DocumentStoreError: If the store fails; nothing is left behind
        """
        config_id = version.config_id
        try:
            self.store.insert_document(VERSIONS_COLLECTION, version.to_document())
        except DuplicateDocumentError:
            raise ConflictError(f"config {config_id} was modified concurrently") from None
        try:
            applied = self.store.update_document_if(CONFIGS_COLLECTION, config_id, expected, patch)
        except DocumentStoreError:
            self._discard_version(version)
            raise
        if not applied:
            self._discard_version(version)
            raise ConflictError(f"config {config_id} was modified concurrently")

    def _discard_version(self, version: ConfigVersion) -> None:
        try:
            self.store.delete_document(VERSIONS_COLLECTION, version.id)
        except DocumentStoreError as e:
            self.logger.error(
                "version_cleanup_failed",
                config_id=version.config_id,
                version_number=version.version_number,
                error=str(e),
            )

    def _settle(self, config_id: str) -> None:
        """Align version rows with the config's current activation marker."""
        doc = self.store.get_document(CONFIGS_COLLECTION, config_id)
        if doc is None:
            return
        active_version = doc["active_version"]
        activation_seq = doc["activation_seq"]

        self.store.update_documents(
            VERSIONS_COLLECTION,
            {
                "config_id": config_id,
                "version_number": {"$ne": active_version},
                "activation_seq": {"$lt": activation_seq},
            },
            {"is_active": False, "activation_seq": activation_seq},
        )
        self.store.update_documents(
            VERSIONS_COLLECTION,
            {
                "config_id": config_id,
                "version_number": active_version,
                "activation_seq": {"$lt": activation_seq},
            },
            {"is_active": True, "status": "active", "activation_seq": activation_seq},
        )

    def _audit(
        self,
        config: Config,
        action: str,
        actor: str,
        old_value: Any = None,
        new_value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.audit.append(
            AuditLog(
                resource_type="config",
                resource_id=config.id,
                resource_key=config.config_key,
                tenant_id=config.tenant_id,
                environment=config.environment,
                action=action,
                old_value=old_value,
                new_value=new_value,
                user_id=actor,
                details=details or {},
            )
        )

    def _cache_get(self, key: str) -> Any | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key)
        except CacheError as e:
            self.logger.warning("config_cache_read_failed", cache_key=key, error=str(e))
            return None

    def _cache_set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, value, ttl_seconds)
        except CacheError as e:
            self.logger.warning("config_cache_write_failed", cache_key=key, error=str(e))

    def _invalidate(self, config: Config) -> None:
        if self.cache is None:
            return
        key = cache_key("config", config.tenant_id, config.environment, config.config_key)
        try:
            self.cache.delete(key)
        except CacheError as e:
            self.logger.warning("config_cache_invalidation_failed", cache_key=key, error=str(e))

    def _emit(
        self,
        config: Config,
        change_type: str,
        actor: str,
        version: int,
        old_value: ConfigValue | None = None,
        new_value: ConfigValue | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.metrics:
            self.metrics.increment(
                "config_changes_total",
                tags={"change_type": change_type, "environment": config.environment},
            )
        if self.change_listener is None:
            return

        change = ConfigChangeNotification(
            config_key=config.config_key,
            tenant_id=config.tenant_id,
            environment=config.environment,
            old_value=old_value.data if old_value is not None else None,
            new_value=new_value.data if new_value is not None else None,
            version=version,
            change_type=change_type,
            changed_by=actor,
            timestamp=self._now(),
            metadata={"resource_type": "config", "config_id": config.id, **(metadata or {})},
        )
        try:
            self.change_listener(change)
        except Exception as e:
            self.logger.error(
                "change_listener_failed",
                config_key=config.config_key,
                change_type=change_type,
                error=str(e),
            )

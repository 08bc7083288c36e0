# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Data models for the system config service."""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

SYSTEM_ACTOR = "system"
MASKED_VALUE = "***MASKED***"

ENVIRONMENTS = ("development", "staging", "production")
CONFIG_STATUSES = ("active", "inactive", "archived")
VERSION_STATUSES = ("draft", "active", "archived")
SECRET_STATUSES = ("active", "expired", "rotated")
ROTATION_POLICIES = ("manual", "auto")
SUBSCRIPTION_STATUSES = ("active", "paused", "inactive")
CHANGE_TYPES = ("create", "update", "delete", "activate", "rollback")

MAX_PER_PAGE = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def resolve_actor(actor: str | None) -> str:
    """Fall back to the ``system`` sentinel when no actor is supplied."""
    actor = (actor or "").strip()
    return actor or SYSTEM_ACTOR


def require_environment(environment: str | None) -> str:
    if not environment:
        raise ValidationError("environment is required")
    if environment not in ENVIRONMENTS:
        raise ValidationError(
            f"invalid environment '{environment}'; must be one of {', '.join(ENVIRONMENTS)}"
        )
    return environment


def require_key(key: str | None, field: str = "key") -> str:
    key = (key or "").strip()
    if not key:
        raise ValidationError(f"{field} is required")
    if any(not segment for segment in key.split(".")):
        raise ValidationError(f"{field} '{key}' contains an empty segment")
    return key


def page_window(page: int, per_page: int) -> tuple[int, int]:
    """Convert 1-based page numbers into a (skip, limit) pair."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationError(f"per_page must be between 1 and {MAX_PER_PAGE}")
    return (page - 1) * per_page, per_page


class StoredModel(BaseModel):
    """Base for models persisted as documents, keyed by ``_id``."""

    id: str = Field(default_factory=new_id)

    def to_document(self) -> dict[str, Any]:
        doc = self.model_dump()
        doc["_id"] = doc.pop("id")
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]):
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class ConfigValue(BaseModel):
    """A configuration payload tagged with its content type.

    ``json`` values hold any JSON document; ``text`` values hold a string.
    """

    model_config = ConfigDict(frozen=True)

    content_type: Literal["json", "text"] = "json"
    data: Any

    @field_validator("data")
    @classmethod
    def _check_data(cls, value: Any, info) -> Any:
        if value is None:
            raise ValueError("data must not be null")
        if info.data.get("content_type") == "text" and not isinstance(value, str):
            raise ValueError("text values must be strings")
        return value

    @classmethod
    def coerce(cls, value: Any) -> "ConfigValue":
        """Accept a ConfigValue, a tagged mapping, or a bare JSON payload."""
        if isinstance(value, ConfigValue):
            return value
        try:
            if isinstance(value, dict) and set(value) == {"content_type", "data"}:
                return cls.model_validate(value)
            return cls(content_type="json", data=value)
        except ValueError as e:
            raise ValidationError(f"invalid config value: {e}") from e


class Config(StoredModel):
    """A configuration entry identified by (tenant_id, config_key, environment)."""

    tenant_id: str | None = None
    config_key: str
    environment: str
    value: ConfigValue
    version: int = 1
    active_version: int = 1
    activation_seq: int = 1
    status: str = "active"
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: str = SYSTEM_ACTOR
    updated_by: str = SYSTEM_ACTOR


class ConfigVersion(StoredModel):
    """One numbered snapshot of a configuration value."""

    config_id: str
    version_number: int
    tenant_id: str | None = None
    config_key: str
    environment: str
    value: ConfigValue
    change_reason: str = ""
    status: str = "draft"
    is_active: bool = False
    activation_seq: int = 0
    validation_error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str = SYSTEM_ACTOR

    @staticmethod
    def document_id(config_id: str, version_number: int) -> str:
        return f"{config_id}:{version_number}"


class VersionDiff(BaseModel):
    """Structural comparison of two versions, keyed by dotted path."""

    config_id: str
    version_a: ConfigVersion
    version_b: ConfigVersion
    added: dict[str, Any] = Field(default_factory=dict)
    removed: dict[str, Any] = Field(default_factory=dict)
    changed: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def identical(self) -> bool:
        return not (self.added or self.removed or self.changed)


class Secret(StoredModel):
    """An encrypted secret. ``encrypted_value`` never appears in serialized output."""

    tenant_id: str | None = None
    secret_key: str
    environment: str
    encrypted_value: str = Field(default="", exclude=True, repr=False)
    description: str = ""
    rotation_policy: str = "manual"
    rotation_days: int = 0
    last_rotated_at: datetime | None = None
    expires_at: datetime | None = None
    status: str = "active"
    version: int = 1
    encryption_key_id: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    access_count: int = 0
    last_accessed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: str = SYSTEM_ACTOR
    updated_by: str = SYSTEM_ACTOR

    def to_document(self) -> dict[str, Any]:
        doc = super().to_document()
        doc["encrypted_value"] = self.encrypted_value
        return doc

    def masked(self) -> dict[str, Any]:
        """Display view with the fixed placeholder in place of the value."""
        view = self.model_dump(mode="json")
        view["value"] = MASKED_VALUE
        return view


class RevealedSecret(BaseModel):
    """A secret returned together with its decrypted value."""

    secret: Secret
    value: str = Field(repr=False)


class SecretAccessLog(StoredModel):
    """Immutable record of one action on a secret."""

    secret_id: str
    secret_key: str
    tenant_id: str | None = None
    environment: str
    user_id: str = SYSTEM_ACTOR
    service_name: str = ""
    action: str
    success: bool = True
    fail_reason: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class AuditLog(StoredModel):
    """Immutable record of one mutating action on a config or secret."""

    resource_type: str
    resource_id: str
    resource_key: str = ""
    tenant_id: str | None = None
    environment: str | None = None
    action: str
    old_value: Any = None
    new_value: Any = None
    user_id: str = SYSTEM_ACTOR
    ip_address: str | None = None
    user_agent: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime | None = None


class WatchSubscription(BaseModel):
    """A webhook subscription to configuration changes."""

    subscriber_id: str
    service_name: str = ""
    callback_url: str
    patterns: list[str] = Field(default_factory=list)
    environments: list[str] = Field(default_factory=list)
    tenant_id: str | None = None
    status: str = "active"
    failure_count: int = 0
    last_notified: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict[str, Any]:
        doc = self.model_dump()
        doc["_id"] = self.subscriber_id
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "WatchSubscription":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data.setdefault("subscriber_id", str(doc.get("_id", "")))
        return cls.model_validate(data)


class ConfigChangeNotification(BaseModel):
    """Webhook payload describing one change. Field names are a public contract."""

    config_key: str
    tenant_id: str | None = None
    environment: str
    old_value: Any = None
    new_value: Any = None
    version: int = 0
    change_type: Literal["create", "update", "delete", "activate", "rollback"]
    changed_by: str = SYSTEM_ACTOR
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DeliveryOutcome(BaseModel):
    """Result of delivering one notification to one subscriber."""

    subscriber_id: str
    delivered: bool
    attempts: int
    error: str | None = None
    paused: bool = False


class DispatchResult(BaseModel):
    """Aggregate result of one dispatch."""

    change_type: str
    config_key: str
    matched: int = 0
    outcomes: list[DeliveryOutcome] = Field(default_factory=list)

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.delivered)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.delivered)

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""System config service: versioned configs, encrypted secrets, audit and change notifications."""

__version__ = "0.1.0"

from .audit import AuditRecorder
from .config_versions import ConfigVersionStore, VersionHistory, structural_diff
from .encryptor import Encryptor, generate_key
from .errors import (
    ConfigurationError,
    ConflictError,
    DeliveryError,
    IntegrityError,
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from .models import (
    MASKED_VALUE,
    SYSTEM_ACTOR,
    AuditLog,
    Config,
    ConfigChangeNotification,
    ConfigValue,
    ConfigVersion,
    DispatchResult,
    RevealedSecret,
    Secret,
    SecretAccessLog,
    VersionDiff,
    WatchSubscription,
)
from .notifications import NotificationDispatcher, RequestsWebhookSender, WebhookSender
from .patterns import match_pattern, validate_pattern
from .retry_policy import DeliveryPolicy
from .secret_vault import SecretVault

__all__ = [
    "__version__",
    "AuditRecorder",
    "ConfigVersionStore",
    "VersionHistory",
    "structural_diff",
    "Encryptor",
    "generate_key",
    "SecretVault",
    "NotificationDispatcher",
    "WebhookSender",
    "RequestsWebhookSender",
    "DeliveryPolicy",
    "match_pattern",
    "validate_pattern",
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "IntegrityError",
    "ConfigurationError",
    "DeliveryError",
    "InternalError",
    "MASKED_VALUE",
    "SYSTEM_ACTOR",
    "AuditLog",
    "Config",
    "ConfigChangeNotification",
    "ConfigValue",
    "ConfigVersion",
    "DispatchResult",
    "RevealedSecret",
    "Secret",
    "SecretAccessLog",
    "VersionDiff",
    "WatchSubscription",
]

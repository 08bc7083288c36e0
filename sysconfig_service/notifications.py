# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Watch subscriptions and webhook delivery of change notifications."""

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any

import requests
from pydantic import ValidationError as ModelValidationError

from sysconfig_logging import Logger, create_logger
from sysconfig_metrics import MetricsCollector
from sysconfig_storage import DocumentNotFoundError, DocumentStore, DocumentStoreError, DuplicateDocumentError

from .errors import ConflictError, DeliveryError, NotFoundError, ValidationError, storage_errors
from .models import (
    ENVIRONMENTS,
    SUBSCRIPTION_STATUSES,
    ConfigChangeNotification,
    DeliveryOutcome,
    DispatchResult,
    WatchSubscription,
    page_window,
    require_environment,
    require_key,
    resolve_actor,
    utcnow,
)
from .patterns import match_any, validate_pattern
from .retry_policy import DeliveryPolicy, RetryRunner

SUBSCRIPTIONS_COLLECTION = "watch_subscriptions"
DEFAULT_FAILURE_THRESHOLD = 5

UPDATABLE_FIELDS = {"patterns", "environments", "callback_url", "tenant_id", "service_name", "status"}


class WebhookSender(ABC):
    """Outbound HTTP collaborator for webhook delivery."""

    @abstractmethod
    def send(self, url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float) -> None:
        """POST a payload.

        Raises:
            DeliveryError: If the request fails, times out or is rejected
        """
        pass


class RequestsWebhookSender(WebhookSender):
    """Webhook sender built on ``requests``."""

    def send(self, url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float) -> None:
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise DeliveryError(f"webhook timed out after {timeout}s") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            retryable = status is None or status >= 500 or status == 429
            raise DeliveryError(f"webhook returned HTTP {status}", status=status, retryable=retryable) from e
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"webhook request failed: {e}") from e


def _string_list(fields: dict[str, Any], name: str) -> list[str]:
    values = fields[name]
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ValidationError(f"{name} must be a list of strings")
    return values


def validate_subscription_fields(fields: dict[str, Any]) -> None:
    """Validate whichever subscription fields are present.

    An explicit None is rejected for every field except ``tenant_id``.

    Raises:
        ValidationError: On an empty, mistyped or malformed value
    """
    for name in ("service_name", "callback_url", "status"):
        if name in fields and not isinstance(fields[name], str):
            raise ValidationError(f"{name} must be a string")
    if "tenant_id" in fields and not isinstance(fields["tenant_id"], (str, type(None))):
        raise ValidationError("tenant_id must be a string or null")
    if "callback_url" in fields:
        url = fields["callback_url"]
        if not url:
            raise ValidationError("callback_url is required")
        if not url.startswith(("http://", "https://")):
            raise ValidationError("callback_url must be an http(s) URL")
    if "patterns" in fields:
        patterns = _string_list(fields, "patterns")
        if not patterns:
            raise ValidationError("at least one pattern is required")
        for pattern in patterns:
            validate_pattern(pattern)
    if "environments" in fields:
        for environment in _string_list(fields, "environments"):
            if environment not in ENVIRONMENTS:
                raise ValidationError(f"invalid environment '{environment}'")
    if "status" in fields and fields["status"] not in SUBSCRIPTION_STATUSES:
        raise ValidationError(
            f"invalid status '{fields['status']}'; must be one of {', '.join(SUBSCRIPTION_STATUSES)}"
        )


def subscription_matches(
    subscription: WatchSubscription, config_key: str, tenant_id: str | None, environment: str
) -> bool:
    """True if the subscription's patterns, environments and tenant filter admit the change."""
    if subscription.environments and environment not in subscription.environments:
        return False
    if subscription.tenant_id and subscription.tenant_id != tenant_id:
        return False
    return match_any(subscription.patterns, config_key)


class NotificationDispatcher:
    """Subscription registry and webhook fan-out.

    Deliveries for one change run concurrently. Bookkeeping for a single
    subscription (failure counting, pausing, resets) is serialized by a
    per-subscription lock and uses atomic store operations.
    """

    def __init__(
        self,
        store: DocumentStore,
        sender: WebhookSender | None = None,
        policy: DeliveryPolicy | None = None,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        max_workers: int = 8,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
        now_fn: Callable[[], datetime] = utcnow,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        if failure_threshold < 1:
            raise ValidationError("failure_threshold must be at least 1")
        self.store = store
        self.sender = sender or RequestsWebhookSender()
        self.policy = policy or DeliveryPolicy()
        self.failure_threshold = failure_threshold
        self.logger = logger or create_logger(name="sysconfig_service.notifications")
        self.metrics = metrics
        self._now = now_fn
        self._runner = RetryRunner(self.policy, sleep_fn=sleep_fn)
        self._delivery_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="webhook")
        self._dispatch_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dispatch")
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def ensure_indexes(self) -> None:
        with storage_errors("subscription index creation"):
            self.store.ensure_index(SUBSCRIPTIONS_COLLECTION, ["status"])

    def close(self) -> None:
        """Wait for queued dispatches and stop the worker pools."""
        self._dispatch_pool.shutdown(wait=True)
        self._delivery_pool.shutdown(wait=True)

    # Registry

    def subscribe(self, subscription: WatchSubscription) -> WatchSubscription:
        """Register a subscription, active with no recorded failures.

        Raises:
            ValidationError: On a missing id, URL or pattern list, a malformed
                pattern, or an unknown environment or status
            ConflictError: If the subscriber_id is already registered
        """
        if not (subscription.subscriber_id or "").strip():
            raise ValidationError("subscriber_id is required")
        validate_subscription_fields(subscription.model_dump())

        now = self._now()
        stored = subscription.model_copy(update={
            "failure_count": 0,
            "last_notified": None,
            "created_at": now,
            "updated_at": now,
        })
        with storage_errors("subscribe"):
            try:
                self.store.insert_document(SUBSCRIPTIONS_COLLECTION, stored.to_document())
            except DuplicateDocumentError:
                raise ConflictError(f"subscriber '{subscription.subscriber_id}' already exists") from None

        self.logger.info(
            "subscription_created",
            subscriber_id=stored.subscriber_id,
            service_name=stored.service_name,
            patterns=stored.patterns,
            environments=stored.environments,
        )
        return stored

    def unsubscribe(self, subscriber_id: str) -> None:
        with storage_errors("unsubscribe"):
            try:
                self.store.delete_document(SUBSCRIPTIONS_COLLECTION, subscriber_id)
            except DocumentNotFoundError:
                raise NotFoundError(f"subscriber '{subscriber_id}' not found") from None
        with self._locks_guard:
            self._locks.pop(subscriber_id, None)
        self.logger.info("subscription_removed", subscriber_id=subscriber_id)

    def get(self, subscriber_id: str) -> WatchSubscription:
        with storage_errors("subscription lookup"):
            doc = self.store.get_document(SUBSCRIPTIONS_COLLECTION, subscriber_id)
        if doc is None:
            raise NotFoundError(f"subscriber '{subscriber_id}' not found")
        return WatchSubscription.from_document(doc)

    def list_subscriptions(
        self, status: str | None = None, page: int = 1, per_page: int = 20
    ) -> tuple[list[WatchSubscription], int]:
        skip, limit = page_window(page, per_page)
        filter_dict: dict[str, Any] = {}
        if status is not None:
            validate_subscription_fields({"status": status})
            filter_dict["status"] = status
        with storage_errors("subscription list"):
            docs = self.store.query_documents(
                SUBSCRIPTIONS_COLLECTION, filter_dict, limit=limit, skip=skip, sort=[("subscriber_id", 1)]
            )
            total = self.store.count_documents(SUBSCRIPTIONS_COLLECTION, filter_dict)
        return [WatchSubscription.from_document(doc) for doc in docs], total

    def update_subscription(self, subscriber_id: str, updates: dict[str, Any]) -> WatchSubscription:
        """Change subscription fields.

        Setting ``status`` to ``active`` is the only way to resume a paused
        subscription and also clears its failure count.

        Raises:
            ValidationError: On an unknown field or invalid value
            NotFoundError: If the subscription does not exist
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"fields cannot be updated: {', '.join(sorted(unknown))}")
        validate_subscription_fields(updates)

        patch = dict(updates)
        patch["updated_at"] = self._now()
        if updates.get("status") == "active":
            patch["failure_count"] = 0

        with self._lock_for(subscriber_id):
            with storage_errors("subscription update"):
                try:
                    self.store.update_document(SUBSCRIPTIONS_COLLECTION, subscriber_id, patch)
                except DocumentNotFoundError:
                    raise NotFoundError(f"subscriber '{subscriber_id}' not found") from None

        self.logger.info("subscription_updated", subscriber_id=subscriber_id, fields=sorted(updates))
        return self.get(subscriber_id)

    def get_matching_subscriptions(
        self, config_key: str, tenant_id: str | None, environment: str
    ) -> list[WatchSubscription]:
        """Active subscriptions that would receive a change to this key."""
        with storage_errors("subscription match"):
            docs = self.store.query_documents(SUBSCRIPTIONS_COLLECTION, {"status": "active"}, limit=0)
        matching = []
        for doc in docs:
            try:
                subscription = WatchSubscription.from_document(doc)
            except ModelValidationError as e:
                self.logger.warning(
                    "subscription_malformed", subscriber_id=str(doc.get("_id")), error=str(e)
                )
                continue
            if subscription_matches(subscription, config_key, tenant_id, environment):
                matching.append(subscription)
        return matching

    # Delivery

    def dispatch(self, change: ConfigChangeNotification) -> DispatchResult:
        """Deliver a change to every matching active subscription.

        Never raises: delivery and bookkeeping failures are logged and
        reported in the result.
        """
        result = DispatchResult(change_type=change.change_type, config_key=change.config_key)
        try:
            subscriptions = self.get_matching_subscriptions(
                change.config_key, change.tenant_id, change.environment
            )
        except Exception as e:
            self.logger.error("dispatch_match_failed", config_key=change.config_key, error=str(e))
            return result

        result.matched = len(subscriptions)
        if not subscriptions:
            return result

        payload = change.model_dump(mode="json")
        futures = [self._delivery_pool.submit(self._deliver, s, change, payload) for s in subscriptions]
        result.outcomes = [f.result() for f in futures]

        self.logger.info(
            "dispatch_complete",
            config_key=change.config_key,
            change_type=change.change_type,
            matched=result.matched,
            delivered=result.delivered,
            failed=result.failed,
        )
        return result

    def dispatch_async(self, change: ConfigChangeNotification) -> Future:
        """Queue a dispatch in the background and return its future."""
        return self._dispatch_pool.submit(self.dispatch, change)

    def trigger_notification(
        self,
        config_key: str,
        tenant_id: str | None,
        environment: str,
        actor: str | None = None,
    ) -> DispatchResult:
        """Synthesize an ``update`` change for a key and dispatch it."""
        change = ConfigChangeNotification(
            config_key=require_key(config_key, "config_key"),
            tenant_id=tenant_id,
            environment=require_environment(environment),
            change_type="update",
            changed_by=resolve_actor(actor),
            timestamp=self._now(),
            metadata={"manual_trigger": True},
        )
        return self.dispatch(change)

    def _lock_for(self, subscriber_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(subscriber_id, threading.Lock())

    def _deliver(
        self, subscription: WatchSubscription, change: ConfigChangeNotification, payload: dict[str, Any]
    ) -> DeliveryOutcome:
        headers = {
            "Content-Type": "application/json",
            "X-Config-Change-Type": change.change_type,
        }
        attempts = 0
        start_time = time.time()

        def attempt(attempt_number: int) -> None:
            nonlocal attempts
            attempts = attempt_number
            self.sender.send(subscription.callback_url, payload, headers, self.policy.timeout_seconds)

        try:
            self._runner.run(
                attempt, retryable=lambda e: not isinstance(e, DeliveryError) or e.retryable
            )
        except Exception as e:
            self._observe_delivery("failure", time.time() - start_time, attempts)
            paused = self._record_failure(subscription, change, e)
            return DeliveryOutcome(
                subscriber_id=subscription.subscriber_id,
                delivered=False,
                attempts=attempts,
                error=str(e),
                paused=paused,
            )

        self._observe_delivery("success", time.time() - start_time, attempts)
        self._record_success(subscription, change)
        return DeliveryOutcome(subscriber_id=subscription.subscriber_id, delivered=True, attempts=attempts)

    def _observe_delivery(self, outcome: str, elapsed: float, attempts: int) -> None:
        if self.metrics:
            self.metrics.observe("notification_delivery_seconds", elapsed, tags={"outcome": outcome})
            self.metrics.observe("notification_delivery_attempts", attempts, tags={"outcome": outcome})

    def _record_success(self, subscription: WatchSubscription, change: ConfigChangeNotification) -> None:
        now = self._now()
        with self._lock_for(subscription.subscriber_id):
            try:
                self.store.update_document(
                    SUBSCRIPTIONS_COLLECTION,
                    subscription.subscriber_id,
                    {"failure_count": 0, "last_notified": now, "updated_at": now},
                )
            except DocumentStoreError as e:
                self.logger.warning(
                    "subscription_bookkeeping_failed",
                    subscriber_id=subscription.subscriber_id,
                    error=str(e),
                )
        if self.metrics:
            self.metrics.increment("notifications_delivered_total", tags={"change_type": change.change_type})
        self.logger.debug(
            "notification_delivered",
            subscriber_id=subscription.subscriber_id,
            config_key=change.config_key,
        )

    def _record_failure(
        self, subscription: WatchSubscription, change: ConfigChangeNotification, error: Exception
    ) -> bool:
        """Count a failed delivery and pause the subscription at the threshold.

        Returns:
            True if this failure paused the subscription
        """
        if self.metrics:
            self.metrics.increment("notifications_failed_total", tags={"change_type": change.change_type})
        self.logger.warning(
            "notification_failed",
            subscriber_id=subscription.subscriber_id,
            config_key=change.config_key,
            error=str(error),
        )

        now = self._now()
        with self._lock_for(subscription.subscriber_id):
            try:
                doc = self.store.increment_document(
                    SUBSCRIPTIONS_COLLECTION,
                    subscription.subscriber_id,
                    {"failure_count": 1},
                    {"updated_at": now},
                )
                if doc.get("failure_count", 0) < self.failure_threshold:
                    return False
                paused = self.store.update_document_if(
                    SUBSCRIPTIONS_COLLECTION,
                    subscription.subscriber_id,
                    {"status": "active", "failure_count": {"$gte": self.failure_threshold}},
                    {"status": "paused", "updated_at": now},
                )
            except DocumentStoreError as e:
                self.logger.warning(
                    "subscription_bookkeeping_failed",
                    subscriber_id=subscription.subscriber_id,
                    error=str(e),
                )
                return False

        if paused:
            if self.metrics:
                self.metrics.increment("subscriptions_paused_total")
            self.logger.warning(
                "subscription_paused",
                subscriber_id=subscription.subscriber_id,
                failure_count=doc.get("failure_count"),
                threshold=self.failure_threshold,
            )
        return paused

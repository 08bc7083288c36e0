# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Webhook delivery retry policy with fixed or exponential backoff."""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import ValidationError

BACKOFF_KINDS = ("none", "fixed", "exponential")


@dataclass(frozen=True)
class DeliveryPolicy:
    """How one notification is delivered to one subscriber.

    Attributes:
        max_attempts: Total attempts per delivery, including the first (default: 3)
        backoff: "none", "fixed" or "exponential" (default: "exponential")
        base_delay_ms: Delay before the second attempt (default: 200)
        max_delay_ms: Cap applied to every delay (default: 5000)
        timeout_seconds: Per-request HTTP timeout (default: 10.0)
        use_jitter: Apply full jitter to computed delays (default: True)
    """
    max_attempts: int = 3
    backoff: str = "exponential"
    base_delay_ms: int = 200
    max_delay_ms: int = 5000
    timeout_seconds: float = 10.0
    use_jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        if self.backoff not in BACKOFF_KINDS:
            raise ValidationError(f"backoff must be one of {', '.join(BACKOFF_KINDS)}")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValidationError("delays must not be negative")
        if self.timeout_seconds <= 0:
            raise ValidationError("timeout_seconds must be positive")

    def delay_ms(self, attempt_number: int) -> int:
        """Delay to wait before ``attempt_number`` (1-indexed).

        The first attempt is never delayed.
        """
        if attempt_number <= 1 or self.backoff == "none":
            return 0
        if self.backoff == "fixed":
            delay = self.base_delay_ms
        else:
            delay = self.base_delay_ms * (2 ** (attempt_number - 2))
        delay = min(delay, self.max_delay_ms)
        if self.use_jitter and delay > 0:
            delay = random.randint(0, delay)
        return delay


@dataclass
class RetryRunner:
    """Runs a callable under a :class:`DeliveryPolicy`."""

    policy: DeliveryPolicy
    sleep_fn: Callable[[float], None] = field(default=time.sleep)

    def run(self, attempt: Callable[[int], None], retryable: Callable[[Exception], bool]) -> int:
        """Call ``attempt(n)`` until it returns or attempts run out.

        Returns:
            The number of attempts made

        Raises:
            The last exception once attempts are exhausted, or immediately
            when ``retryable`` rejects it
        """
        attempt_number = 1
        while True:
            try:
                attempt(attempt_number)
                return attempt_number
            except Exception as e:
                if attempt_number >= self.policy.max_attempts or not retryable(e):
                    raise
                attempt_number += 1
                delay = self.policy.delay_ms(attempt_number)
                if delay > 0:
                    self.sleep_fn(delay / 1000.0)

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for the webhook delivery retry policy."""

from unittest.mock import Mock

import pytest

from sysconfig_service import DeliveryError, DeliveryPolicy, ValidationError
from sysconfig_service.retry_policy import RetryRunner


class TestDeliveryPolicy:
    """Tests for delay computation."""

    def test_defaults(self):
        policy = DeliveryPolicy()

        assert policy.max_attempts == 3
        assert policy.backoff == "exponential"
        assert policy.timeout_seconds == 10.0

    def test_first_attempt_never_delayed(self):
        policy = DeliveryPolicy(use_jitter=False)

        assert policy.delay_ms(1) == 0

    def test_exponential_delays(self):
        """Delays double from the base delay and stop at the cap."""
        policy = DeliveryPolicy(base_delay_ms=100, max_delay_ms=1000, use_jitter=False)

        assert [policy.delay_ms(n) for n in range(2, 8)] == [100, 200, 400, 800, 1000, 1000]

    def test_fixed_delays(self):
        policy = DeliveryPolicy(backoff="fixed", base_delay_ms=250, use_jitter=False)

        assert [policy.delay_ms(n) for n in range(2, 5)] == [250, 250, 250]

    def test_no_backoff(self):
        policy = DeliveryPolicy(backoff="none", base_delay_ms=250, use_jitter=False)

        assert policy.delay_ms(5) == 0

    def test_jitter_stays_within_bounds(self):
        policy = DeliveryPolicy(base_delay_ms=100, max_delay_ms=1000)

        for _ in range(50):
            assert 0 <= policy.delay_ms(4) <= 400

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"backoff": "linear"},
            {"base_delay_ms": -1},
            {"max_delay_ms": -5},
            {"timeout_seconds": 0},
        ],
    )
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValidationError):
            DeliveryPolicy(**kwargs)


class TestRetryRunner:
    """Tests for running attempts under a policy."""

    def test_success_first_try(self):
        sleep = Mock()
        runner = RetryRunner(DeliveryPolicy(use_jitter=False), sleep_fn=sleep)
        attempt = Mock()

        assert runner.run(attempt, retryable=lambda e: True) == 1
        attempt.assert_called_once_with(1)
        sleep.assert_not_called()

    def test_retries_until_success(self):
        """Failed attempts are retried with backoff between them."""
        sleep = Mock()
        policy = DeliveryPolicy(max_attempts=3, base_delay_ms=100, use_jitter=False)
        runner = RetryRunner(policy, sleep_fn=sleep)
        attempt = Mock(side_effect=[DeliveryError("boom"), DeliveryError("boom"), None])

        assert runner.run(attempt, retryable=lambda e: True) == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.1, 0.2]

    def test_exhausted_attempts_reraise_last_error(self):
        runner = RetryRunner(DeliveryPolicy(max_attempts=2, backoff="none"), sleep_fn=Mock())
        attempt = Mock(side_effect=[DeliveryError("first"), DeliveryError("second")])

        with pytest.raises(DeliveryError, match="second"):
            runner.run(attempt, retryable=lambda e: True)
        assert attempt.call_count == 2

    def test_non_retryable_error_stops_immediately(self):
        runner = RetryRunner(DeliveryPolicy(max_attempts=5, backoff="none"), sleep_fn=Mock())
        attempt = Mock(side_effect=DeliveryError("rejected", status=400, retryable=False))

        with pytest.raises(DeliveryError):
            runner.run(attempt, retryable=lambda e: e.retryable)
        attempt.assert_called_once_with(1)

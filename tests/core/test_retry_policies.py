# SPDX-License-Identifier: Apache-2.0
"""
Core — retry policy decisions.

Policies are pure values: the same (error, attempt) pair always yields the
same decision, and no policy keeps per-call state.
"""

import pytest

from fusion_sdk.core.errors import Cancelled, HttpStatusError, TransportError, ValidationError
from fusion_sdk.core.retry import (
    ExponentialBackoffRetry,
    FixedDelayRetry,
    NeverRetry,
)


def test_never_retry_fails_everything():
    policy = NeverRetry()
    assert policy.max_attempts == 1
    decision = policy.decide(TransportError("x"), 1)
    assert not decision.retry
    assert not decision.exhausted, "NeverRetry propagates the error unwrapped"


def test_fixed_delay_retries_until_budget():
    policy = FixedDelayRetry(max_retries=2, delay_ms=25)
    err = TransportError("reset")

    assert policy.max_attempts == 3
    first = policy.decide(err, 1)
    second = policy.decide(err, 2)
    third = policy.decide(err, 3)

    assert first.retry and first.delay_ms == 25
    assert second.retry and second.delay_ms == 25
    assert not third.retry and third.exhausted


@pytest.mark.parametrize(
    "error",
    [
        Cancelled(),
        ValidationError(),
        HttpStatusError("bad request", status_code=400),
        RuntimeError("bug"),
    ],
)
def test_non_retryable_errors_fail_without_exhausting(error):
    for policy in (FixedDelayRetry(max_retries=3), ExponentialBackoffRetry(max_retries=3)):
        decision = policy.decide(error, 1)
        assert not decision.retry, f"{type(error).__name__} must not be retried"
        assert not decision.exhausted


def test_exponential_backoff_grows_by_factor():
    policy = ExponentialBackoffRetry(max_retries=4, initial_delay_ms=100, backoff_factor=2.0)
    assert [policy.backoff_ms(n) for n in (1, 2, 3, 4)] == [100, 200, 400, 800]

    err = HttpStatusError("overloaded", status_code=503)
    assert policy.decide(err, 3).delay_ms == 400


def test_exponential_backoff_respects_cap():
    policy = ExponentialBackoffRetry(
        max_retries=5, initial_delay_ms=100, backoff_factor=3.0, max_delay_ms=500
    )
    assert policy.backoff_ms(1) == 100
    assert policy.backoff_ms(2) == 300
    assert policy.backoff_ms(3) == 500
    assert policy.backoff_ms(5) == 500


def test_jitter_stays_within_backoff():
    policy = ExponentialBackoffRetry(max_retries=3, initial_delay_ms=1000, use_jitter=True)
    err = TransportError("x")
    for _ in range(50):
        delay = policy.decide(err, 2).delay_ms
        assert 0 <= delay <= 2000


def test_retry_after_hint_extends_delay():
    policy = FixedDelayRetry(max_retries=1, delay_ms=10)
    err = HttpStatusError("slow down", status_code=429, retry_after_ms=750)
    assert policy.decide(err, 1).delay_ms == 750

    shorter = HttpStatusError("slow down", status_code=429, retry_after_ms=1)
    assert policy.decide(shorter, 1).delay_ms == 10, "a shorter hint never shortens the backoff"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"initial_delay_ms": -5},
        {"backoff_factor": 0.5},
        {"initial_delay_ms": 100, "max_delay_ms": 50},
    ],
)
def test_exponential_backoff_rejects_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        ExponentialBackoffRetry(**kwargs)


def test_fixed_delay_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        FixedDelayRetry(max_retries=-1)
    with pytest.raises(ValueError):
        FixedDelayRetry(delay_ms=-1)

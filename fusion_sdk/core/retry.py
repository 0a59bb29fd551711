# fusion_sdk/core/retry.py
# SPDX-License-Identifier: Apache-2.0
"""
Retry policies and the attempt loop for model calls.

A policy is a pure, frozen value: given the failure and the 1-based
attempt number it returns a `RetryDecision`. The mutable attempt counter
lives in `call_with_retry`, so one policy instance can be shared by any
number of concurrent calls.

Classification comes from the normalized error taxonomy
(`fusion_sdk.core.errors.is_retryable`): transport failures and
rate-limit / server-error statuses are retried; client errors,
validation errors and cancellation are not.

Usage:
    policy = ExponentialBackoffRetry(max_retries=3, initial_delay_ms=500)
    result = await call_with_retry(lambda: do_call(), policy=policy, signal=signal)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar

from fusion_sdk.core.cancellation import CancellationSignal, cancellable_sleep, check_cancelled
from fusion_sdk.core.errors import RetryLimitExceeded, is_retryable

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryDecision:
    """
    Outcome of a policy decision.

    Attributes:
        retry:     Re-attempt the call.
        delay_ms:  Backoff before the next attempt (only when retry=True).
        exhausted: The error was retryable but the budget is spent.
    """

    retry: bool
    delay_ms: int = 0
    exhausted: bool = False


_FAIL = RetryDecision(retry=False)
_EXHAUSTED = RetryDecision(retry=False, exhausted=True)


class RetryPolicy(Protocol):
    """Strategy interface for deciding whether to re-attempt a failed call."""

    @property
    def max_attempts(self) -> int: ...

    def decide(self, error: BaseException, attempt: int) -> RetryDecision: ...


@dataclass(frozen=True)
class NeverRetry:
    """Single attempt; every failure propagates unchanged."""

    @property
    def max_attempts(self) -> int:
        return 1

    def decide(self, error: BaseException, attempt: int) -> RetryDecision:
        return _FAIL


@dataclass(frozen=True)
class FixedDelayRetry:
    """
    Retry up to `max_retries` times with a constant delay.

    Attributes:
        max_retries: Re-attempts after the first try (total tries = max_retries + 1).
        delay_ms:    Delay before each re-attempt.
    """

    max_retries: int = 2
    delay_ms: int = 0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def decide(self, error: BaseException, attempt: int) -> RetryDecision:
        if not is_retryable(error):
            return _FAIL
        if attempt >= self.max_attempts:
            return _EXHAUSTED
        return RetryDecision(retry=True, delay_ms=_honor_retry_after(error, self.delay_ms))


@dataclass(frozen=True)
class ExponentialBackoffRetry:
    """
    Retry with exponential backoff.

    Attributes:
        max_retries:      Re-attempts after the first try.
        initial_delay_ms: Delay before the first re-attempt.
        backoff_factor:   Growth factor per re-attempt.
        max_delay_ms:     Optional cap on the computed delay.
        use_jitter:       Randomize the delay in [0, backoff].
    """

    max_retries: int = 2
    initial_delay_ms: int = 2000
    backoff_factor: float = 2.0
    max_delay_ms: Optional[int] = None
    use_jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_delay_ms is not None and self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms cannot be lower than initial_delay_ms")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_ms(self, attempt: int) -> int:
        """Computed delay after the given (1-based) failed attempt."""
        raw = int(self.initial_delay_ms * (self.backoff_factor ** (attempt - 1)))
        if self.max_delay_ms is not None:
            raw = min(raw, self.max_delay_ms)
        return raw

    def decide(self, error: BaseException, attempt: int) -> RetryDecision:
        if not is_retryable(error):
            return _FAIL
        if attempt >= self.max_attempts:
            return _EXHAUSTED
        delay = self.backoff_ms(attempt)
        if self.use_jitter:
            delay = int(random.random() * delay)
        return RetryDecision(retry=True, delay_ms=_honor_retry_after(error, delay))


def _honor_retry_after(error: BaseException, delay_ms: int) -> int:
    hint = getattr(error, "retry_after_ms", None)
    if isinstance(hint, int) and hint > delay_ms:
        return hint
    return delay_ms


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    signal: Optional[CancellationSignal] = None,
    on_retry: Optional[Callable[[int, int, BaseException], None]] = None,
) -> T:
    """
    Execute `fn` until it succeeds or the policy gives up.

    Args:
        fn:       Zero-arg coroutine factory invoked once per attempt.
        policy:   RetryPolicy deciding re-attempts and backoff.
        signal:   Cancellation signal; checked before every attempt and
                  during backoff. A cancelled call is never re-attempted.
        on_retry: Optional hook (attempt_no, delay_ms, error) called before
                  sleeping. Hook failures never break the loop.

    Raises:
        RetryLimitExceeded: a retryable error persisted past the budget.
        The original error when it is not retryable (including Cancelled).
    """
    errors: List[BaseException] = []
    attempt = 0

    while True:
        check_cancelled(signal)
        attempt += 1
        try:
            return await fn()
        except Exception as exc:
            errors.append(exc)
            decision = policy.decide(exc, attempt)

            if decision.exhausted:
                LOG.debug("retry budget exhausted after %d attempts: %s", attempt, exc)
                raise RetryLimitExceeded(cause=exc, errors=errors, attempts=attempt) from exc
            if not decision.retry:
                raise

            if on_retry is not None:
                try:
                    on_retry(attempt, decision.delay_ms, exc)
                except Exception:
                    LOG.debug("on_retry hook failed", exc_info=True)

            LOG.debug(
                "attempt %d failed with %s; retrying in %d ms",
                attempt,
                type(exc).__name__,
                decision.delay_ms,
            )

        await cancellable_sleep(signal, decision.delay_ms / 1000.0)


__all__ = [
    "RetryDecision",
    "RetryPolicy",
    "NeverRetry",
    "FixedDelayRetry",
    "ExponentialBackoffRetry",
    "call_with_retry",
]

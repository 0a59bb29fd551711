# fusion_sdk/core/throttle.py
# SPDX-License-Identifier: Apache-2.0
"""
Admission control for model calls.

A throttle decides *when* a call may start; it knows nothing about the
call's content. Every policy exposes the same surface:

    async with throttle.admit(signal) as token:
        ...

Waiting for admission is cancellable through the call's signal, and the
token is released exactly once on every exit path (success, failure,
cancellation).
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Optional, Protocol

from fusion_sdk.core.cancellation import CancellationSignal, cancellable_sleep, check_cancelled, guarded

LOG = logging.getLogger(__name__)


class AdmissionToken:
    """Handle for one admitted call. `release()` is idempotent."""

    __slots__ = ("_on_release", "_released")

    def __init__(self, on_release: Optional[Callable[[], None]] = None) -> None:
        self._on_release = on_release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._on_release is not None:
            self._on_release()


class Throttle(Protocol):
    """Throttle interface used by the model call pipeline."""

    def admit(
        self, signal: Optional[CancellationSignal] = None
    ) -> AsyncContextManager[AdmissionToken]:
        ...


class _BaseThrottle:
    async def _acquire(self, signal: Optional[CancellationSignal]) -> AdmissionToken:
        raise NotImplementedError

    @asynccontextmanager
    async def admit(self, signal: Optional[CancellationSignal] = None) -> AsyncIterator[AdmissionToken]:
        token = await self._acquire(signal)
        try:
            yield token
        finally:
            token.release()


class NoopThrottle(_BaseThrottle):
    """Admits every call immediately."""

    async def _acquire(self, signal: Optional[CancellationSignal]) -> AdmissionToken:
        check_cancelled(signal)
        return AdmissionToken()


class MaxConcurrencyThrottle(_BaseThrottle):
    """
    Caps the number of concurrently admitted calls.

    Per-process only; a cancelled waiter never consumes a slot.
    """

    def __init__(self, max_concurrent: int) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max_concurrent = int(max_concurrent)
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        self._in_flight = 0

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def _acquire(self, signal: Optional[CancellationSignal]) -> AdmissionToken:
        check_cancelled(signal)
        await guarded(signal, self._semaphore.acquire(), on_orphan=self._give_back)
        self._in_flight += 1
        return AdmissionToken(self._release)

    def _release(self) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    def _give_back(self, acquired: bool) -> None:
        # A slot won by a waiter that was cancelled before it could use it.
        self._semaphore.release()


class TokenBucketThrottle(_BaseThrottle):
    """
    Token-bucket rate limiter; per-process only.

    Charges one token on admission; releasing the token is a no-op
    for the bucket.
    """

    def __init__(self, *, rate: float = 50.0, capacity: int = 100) -> None:
        if rate <= 0:
            raise ValueError("rate must be > 0")
        self._rate = float(rate)
        self._capacity = max(1, int(capacity))
        self._tokens = float(self._capacity)
        self._last = time.monotonic()
        self._lock = asyncio.Lock()

    def _unlock(self, acquired: bool) -> None:
        self._lock.release()

    def _refill(self) -> None:
        now = time.monotonic()
        delta = now - self._last
        self._last = now
        self._tokens = min(self._capacity, self._tokens + delta * self._rate)

    async def _acquire(self, signal: Optional[CancellationSignal]) -> AdmissionToken:
        check_cancelled(signal)
        await guarded(signal, self._lock.acquire(), on_orphan=self._unlock)
        try:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return AdmissionToken()
                wait_s = (1.0 - self._tokens) / self._rate
                LOG.debug("token bucket empty; waiting %.3fs", wait_s)
                await cancellable_sleep(signal, wait_s)
        finally:
            self._lock.release()


__all__ = [
    "AdmissionToken",
    "Throttle",
    "NoopThrottle",
    "MaxConcurrencyThrottle",
    "TokenBucketThrottle",
]

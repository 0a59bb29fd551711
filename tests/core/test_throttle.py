# SPDX-License-Identifier: Apache-2.0
"""
Core — admission throttles.

Covers:
  • MaxConcurrencyThrottle never admits more than its limit
  • admission is released on success, error and cancellation
  • a cancelled waiter never consumes a slot, even one already granted
  • TokenBucketThrottle spaces admissions once the bucket is empty
"""

import asyncio
import time

import pytest

from fusion_sdk.core.cancellation import CancellationSignal
from fusion_sdk.core.errors import Cancelled
from fusion_sdk.core.throttle import (
    AdmissionToken,
    MaxConcurrencyThrottle,
    NoopThrottle,
    TokenBucketThrottle,
)

pytestmark = pytest.mark.asyncio


async def test_noop_throttle_admits_immediately():
    throttle = NoopThrottle()
    async with throttle.admit() as token:
        assert isinstance(token, AdmissionToken)
        assert not token.released
    assert token.released


async def test_noop_throttle_honours_cancelled_signal():
    signal = CancellationSignal()
    signal.cancel()
    with pytest.raises(Cancelled):
        async with NoopThrottle().admit(signal):
            pass


async def test_concurrency_limit_is_never_exceeded():
    throttle = MaxConcurrencyThrottle(2)
    active = 0
    peak = 0

    async def call():
        nonlocal active, peak
        async with throttle.admit():
            active += 1
            peak = max(peak, active)
            assert throttle.in_flight <= throttle.max_concurrent
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(call() for _ in range(8)))
    assert peak == 2
    assert throttle.in_flight == 0


async def test_admission_released_when_call_raises():
    throttle = MaxConcurrencyThrottle(1)

    with pytest.raises(RuntimeError):
        async with throttle.admit():
            raise RuntimeError("attempt failed")

    assert throttle.in_flight == 0
    async with throttle.admit():
        assert throttle.in_flight == 1


async def test_cancelled_waiter_does_not_consume_a_slot():
    throttle = MaxConcurrencyThrottle(1)
    signal = CancellationSignal()
    release = asyncio.Event()

    async def holder():
        async with throttle.admit():
            await release.wait()

    holding = asyncio.ensure_future(holder())
    await asyncio.sleep(0)

    async def waiter():
        async with throttle.admit(signal):
            pytest.fail("cancelled waiter must not be admitted")

    waiting = asyncio.ensure_future(waiter())
    await asyncio.sleep(0.01)
    signal.cancel()

    with pytest.raises(Cancelled):
        await waiting

    release.set()
    await holding
    assert throttle.in_flight == 0

    async with throttle.admit():
        assert throttle.in_flight == 1


async def test_slot_granted_to_a_cancelled_waiter_is_given_back():
    throttle = MaxConcurrencyThrottle(1)
    holder = throttle.admit()
    await holder.__aenter__()

    async def wait_for_slot():
        async with throttle.admit(CancellationSignal()):
            pass

    waiter = asyncio.create_task(wait_for_slot())
    for _ in range(3):
        await asyncio.sleep(0)

    # Releasing hands the slot to the waiter's acquire; the waiter task is
    # cancelled before it resumes to take it.
    await holder.__aexit__(None, None, None)
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    await asyncio.sleep(0)

    assert throttle.in_flight == 0

    async def admit_once():
        async with throttle.admit(CancellationSignal()):
            return throttle.in_flight

    assert await asyncio.wait_for(admit_once(), 0.5) == 1, "slot leaked to a cancelled waiter"
    assert throttle.in_flight == 0


async def test_task_cancellation_releases_admission():
    throttle = MaxConcurrencyThrottle(1)

    async def call():
        async with throttle.admit():
            await asyncio.sleep(5)

    task = asyncio.ensure_future(call())
    await asyncio.sleep(0.01)
    assert throttle.in_flight == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert throttle.in_flight == 0


async def test_token_release_is_idempotent():
    released = []
    token = AdmissionToken(lambda: released.append(1))
    token.release()
    token.release()
    assert released == [1]


async def test_max_concurrency_rejects_invalid_limit():
    with pytest.raises(ValueError):
        MaxConcurrencyThrottle(0)


async def test_token_bucket_admits_burst_then_waits():
    throttle = TokenBucketThrottle(rate=50.0, capacity=2)

    t0 = time.monotonic()
    for _ in range(3):
        async with throttle.admit():
            pass
    elapsed = time.monotonic() - t0

    # Two tokens from the burst, the third refills at 50/s (~20 ms).
    assert elapsed >= 0.01


async def test_token_bucket_wait_is_cancellable():
    throttle = TokenBucketThrottle(rate=0.5, capacity=1)
    async with throttle.admit():
        pass

    signal = CancellationSignal()
    signal.cancel_after(0.02)
    with pytest.raises(Cancelled):
        async with throttle.admit(signal):
            pass


async def test_token_bucket_rejects_invalid_rate():
    with pytest.raises(ValueError):
        TokenBucketThrottle(rate=0)

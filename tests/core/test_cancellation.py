# SPDX-License-Identifier: Apache-2.0
"""
Core — cooperative cancellation.

Covers:
  • cancel() is one-shot and wakes waiters
  • cancel_after() fires DeadlineExceeded; disarm() drops the timer
  • guard() aborts in-flight work and raises Cancelled
  • guard() hands late results of an abandoned caller to on_orphan
  • child signals follow their parent, not the other way round
"""

import asyncio

import pytest

from fusion_sdk.core.cancellation import (
    CancellationSignal,
    cancellable_sleep,
    check_cancelled,
    guarded,
)
from fusion_sdk.core.errors import Cancelled, DeadlineExceeded

pytestmark = pytest.mark.asyncio


async def test_cancel_is_one_shot():
    signal = CancellationSignal()
    assert not signal.cancelled

    first = Cancelled("first")
    signal.cancel(first)
    signal.cancel(Cancelled("second"))

    assert signal.cancelled
    assert signal.reason is first, "the first reason wins"
    with pytest.raises(Cancelled) as excinfo:
        signal.raise_if_cancelled()
    assert excinfo.value.message == "first"


async def test_wait_returns_reason():
    signal = CancellationSignal()
    waiter = asyncio.ensure_future(signal.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    signal.cancel()
    reason = await asyncio.wait_for(waiter, timeout=1.0)
    assert isinstance(reason, Cancelled)


async def test_guard_cancels_in_flight_work():
    signal = CancellationSignal()
    finished = False

    async def slow():
        nonlocal finished
        await asyncio.sleep(5)
        finished = True

    asyncio.get_running_loop().call_later(0.01, signal.cancel)
    with pytest.raises(Cancelled):
        await signal.guard(slow())
    assert not finished


async def test_guard_returns_result_when_work_wins():
    signal = CancellationSignal()

    async def quick():
        return 42

    assert await signal.guard(quick()) == 42


async def test_guard_on_cancelled_signal_never_starts_work():
    signal = CancellationSignal()
    signal.cancel()
    started = False

    async def work():
        nonlocal started
        started = True

    with pytest.raises(Cancelled):
        await signal.guard(work())
    assert not started


async def test_guard_hands_result_to_cleanup_when_caller_is_cancelled():
    signal = CancellationSignal()
    gate = asyncio.get_running_loop().create_future()
    reclaimed = []

    async def work():
        return await gate

    caller = asyncio.create_task(signal.guard(work(), on_orphan=reclaimed.append))
    for _ in range(3):
        await asyncio.sleep(0)

    gate.set_result("resource")
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    await asyncio.sleep(0)

    assert reclaimed == ["resource"]


async def test_guard_cleanup_skips_work_that_never_finished():
    signal = CancellationSignal()
    reclaimed = []

    caller = asyncio.create_task(signal.guard(asyncio.sleep(10, "late"), on_orphan=reclaimed.append))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    await asyncio.sleep(0)

    assert reclaimed == []


async def test_wait_after_cancel_returns_immediately():
    signal = CancellationSignal()
    signal.cancel(Cancelled("early"))

    reason = await asyncio.wait_for(signal.wait(), 0.5)
    assert reason.message == "early"


async def test_cancel_after_raises_deadline_exceeded():
    signal = CancellationSignal()
    signal.cancel_after(0.01)
    with pytest.raises(DeadlineExceeded):
        await signal.sleep(5)


async def test_cancel_after_non_positive_fires_immediately():
    signal = CancellationSignal()
    signal.cancel_after(0)
    assert signal.cancelled
    assert isinstance(signal.reason, DeadlineExceeded)


async def test_disarm_drops_pending_timer():
    signal = CancellationSignal()
    signal.cancel_after(0.01)
    signal.disarm()
    await asyncio.sleep(0.03)
    assert not signal.cancelled


async def test_child_follows_parent_only():
    parent = CancellationSignal()
    child = parent.child()

    child.cancel()
    assert child.cancelled
    assert not parent.cancelled, "cancelling a child must not cancel the parent"

    other = parent.child()
    parent.cancel(DeadlineExceeded())
    assert other.cancelled
    assert isinstance(other.reason, DeadlineExceeded)


async def test_callbacks_run_once_and_failures_are_isolated():
    signal = CancellationSignal()
    seen = []

    def broken(reason):
        raise RuntimeError("callback bug")

    signal.add_callback(broken)
    signal.add_callback(seen.append)
    signal.cancel()
    signal.cancel()

    assert len(seen) == 1


async def test_removed_callback_is_not_called():
    signal = CancellationSignal()
    seen = []
    signal.add_callback(seen.append)
    signal.remove_callback(seen.append)
    signal.remove_callback(seen.append)
    signal.cancel()
    assert seen == []


async def test_helpers_tolerate_missing_signal():
    async def work():
        return "done"

    assert await guarded(None, work()) == "done"
    await cancellable_sleep(None, 0)
    check_cancelled(None)


async def test_each_raise_is_a_fresh_instance():
    signal = CancellationSignal()
    signal.cancel(DeadlineExceeded("too slow"))
    errors = []
    for _ in range(2):
        try:
            signal.raise_if_cancelled()
        except DeadlineExceeded as exc:
            errors.append(exc)
    assert errors[0] is not errors[1]
    assert errors[0].message == errors[1].message == "too slow"

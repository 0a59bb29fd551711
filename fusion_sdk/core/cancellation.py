# fusion_sdk/core/cancellation.py
# SPDX-License-Identifier: Apache-2.0
"""
Cooperative cancellation for model calls.

A `CancellationSignal` is the Python counterpart of an abort signal: one
signal per call (or per top-level operation, shared with the nested calls
it spawns). The invocation core checks it at every suspension point:

- throttle admission wait
- in-flight HTTP request
- retry backoff sleep
- next awaited stream chunk

Timeouts are a specialization of cancellation: `cancel_after()` arms a
timer that fires the same signal with a `DeadlineExceeded` reason.

Typical usage
-------------

    signal = CancellationSignal()
    signal.cancel_after(30.0)

    text = await generate_text(
        model,
        "Write a haiku",
        options=FunctionOptions(run=RunContext(signal=signal)),
    )
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from fusion_sdk.core.errors import Cancelled, DeadlineExceeded

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationSignal:
    """
    One-shot cancellation flag that can be awaited and raced against work.

    Once cancelled a signal stays cancelled. `reason` is the `Cancelled`
    instance raised to every waiter.
    """

    def __init__(self) -> None:
        self._event: Optional[asyncio.Event] = None
        self._reason: Optional[Cancelled] = None
        self._callbacks: List[Callable[[Cancelled], None]] = []
        self._timer: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancellationSignal {state}>"

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[Cancelled]:
        return self._reason

    def cancel(self, reason: Optional[Cancelled] = None) -> None:
        """Fire the signal. Subsequent calls are no-ops."""
        if self._reason is not None:
            return
        self._reason = reason or Cancelled()
        if self._event is not None:
            self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for callback in list(self._callbacks):
            try:
                callback(self._reason)
            except Exception:
                LOG.warning("cancellation callback failed", exc_info=True)
        self._callbacks.clear()

    def cancel_after(self, seconds: float) -> None:
        """
        Fire the signal with `DeadlineExceeded` after `seconds`.

        Must be called from a running event loop.
        """
        if self.cancelled:
            return
        if seconds <= 0:
            self.cancel(DeadlineExceeded("operation timed out", details={"remaining_ms": 0}))
            return
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(
            seconds,
            self.cancel,
            DeadlineExceeded("operation timed out", details={"timeout_s": seconds}),
        )

    def disarm(self) -> None:
        """Drop a pending `cancel_after` timer without firing the signal."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def add_callback(self, callback: Callable[[Cancelled], None]) -> None:
        """Run `callback(reason)` when the signal fires (immediately if it has)."""
        if self._reason is not None:
            callback(self._reason)
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Cancelled], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def child(self) -> "CancellationSignal":
        """
        Derive a signal that fires when this one fires.

        Cancelling the child does not cancel the parent.
        """
        child = CancellationSignal()
        self.add_callback(child.cancel)
        return child

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise self._fresh_reason()

    def _fired(self) -> asyncio.Event:
        # Created on first wait so the event belongs to the running loop.
        if self._event is None:
            self._event = asyncio.Event()
            if self._reason is not None:
                self._event.set()
        return self._event

    async def wait(self) -> Cancelled:
        await self._fired().wait()
        assert self._reason is not None
        return self._reason

    async def guard(
        self,
        awaitable: Awaitable[T],
        *,
        on_orphan: Optional[Callable[[T], None]] = None,
    ) -> T:
        """
        Await `awaitable` unless the signal fires first.

        On cancellation the in-flight work is cancelled and `Cancelled`
        (or the signal's reason) is raised. If the work had already
        completed when cancellation was observed, its result wins.

        When the awaiting task itself is cancelled, work that still
        completes (or already had) is never returned to anyone;
        `on_orphan(result)` receives it so acquired resources can be
        given back.
        """
        if self._reason is not None:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self._fresh_reason()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._fired().wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            _abandon(task, on_orphan)
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await asyncio.gather(task, return_exceptions=True)
        except BaseException:
            _abandon(task, on_orphan)
            raise
        if not task.cancelled() and task.exception() is None:
            return task.result()
        raise self._fresh_reason()

    async def sleep(self, seconds: float) -> None:
        """Cancellable `asyncio.sleep`."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        await self.guard(asyncio.sleep(seconds))

    def _fresh_reason(self) -> Cancelled:
        # A new instance per raise keeps tracebacks of different waiters apart.
        reason = self._reason or Cancelled()
        return type(reason)(
            reason.message,
            code=reason.code,
            details=reason.details,
        )


def _abandon(task: "asyncio.Future[T]", on_orphan: Optional[Callable[[T], None]]) -> None:
    def reclaim(finished: "asyncio.Future[T]") -> None:
        if finished.cancelled() or finished.exception() is not None:
            return
        try:
            on_orphan(finished.result())
        except Exception:
            LOG.warning("orphaned result cleanup failed", exc_info=True)

    if on_orphan is None:
        task.cancel()
    elif task.done():
        reclaim(task)
    else:
        task.cancel()
        task.add_done_callback(reclaim)


async def guarded(
    signal: Optional[CancellationSignal],
    awaitable: Awaitable[T],
    *,
    on_orphan: Optional[Callable[[T], None]] = None,
) -> T:
    """`signal.guard(awaitable)` that tolerates a missing signal."""
    if signal is None:
        return await awaitable
    return await signal.guard(awaitable, on_orphan=on_orphan)


async def cancellable_sleep(signal: Optional[CancellationSignal], seconds: float) -> None:
    if signal is None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        return
    await signal.sleep(seconds)


def check_cancelled(signal: Optional[CancellationSignal]) -> None:
    if signal is not None:
        signal.raise_if_cancelled()


__all__ = [
    "CancellationSignal",
    "guarded",
    "cancellable_sleep",
    "check_cancelled",
]

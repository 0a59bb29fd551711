# fusion_sdk/model/pipeline.py
# SPDX-License-Identifier: Apache-2.0
"""
Model call pipeline.

Every provider call runs through the same gates:

1. derive the call's cancellation signal (run signal + run deadline)
2. acquire throttle admission (cancellable wait)
3. emit `started`
4. retry loop around the attempt
   (streaming: around *opening* the stream only; once deltas have been
   handed to the caller nothing is replayed)
5. emit `finished` (duration, result) or `failed` (duration, error)
6. release admission, on every exit path
7. return the result, or raise the typed error with call context attached

External task cancellation (`asyncio.CancelledError`) also produces a
`failed` event carrying a `Cancelled` error before propagating.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Iterator, Optional, TypeVar

from fusion_sdk.core.cancellation import CancellationSignal
from fusion_sdk.core.errors import Cancelled, DeadlineExceeded
from fusion_sdk.core.error_context import attach_context
from fusion_sdk.core.retry import call_with_retry
from fusion_sdk.core.streaming import TextDeltaEvent, TextDeltaStream, aggregate_text_deltas
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.run.context import FunctionOptions, RunContext
from fusion_sdk.run.events import ModelCallEvent
from fusion_sdk.run.observer import ObserverBus

LOG = logging.getLogger(__name__)

R = TypeVar("R")


def _elapsed_ms(t0: float) -> float:
    return (time.monotonic() - t0) * 1000.0


@contextmanager
def _call_signal(run: Optional[RunContext]) -> Iterator[Optional[CancellationSignal]]:
    parent = run.signal if run is not None else None
    remaining = run.remaining_ms() if run is not None else None
    if parent is None and remaining is None:
        yield None
        return

    signal = CancellationSignal()
    if parent is not None:
        parent.add_callback(signal.cancel)
    try:
        if remaining is not None:
            if remaining <= 0:
                signal.cancel(
                    DeadlineExceeded("deadline already exceeded", details={"remaining_ms": 0})
                )
            else:
                signal.cancel_after(remaining / 1000.0)
        yield signal
    finally:
        signal.disarm()
        if parent is not None:
            parent.remove_callback(signal.cancel)


def _started_event(model: Any, call_type: str, settings: CallSettings) -> ModelCallEvent:
    return ModelCallEvent.started(
        call_type=call_type,
        provider=model.provider,
        model_name=model.model_name,
        function_id=settings.function_id,
        run_id=settings.run_id,
        user_id=settings.user_id,
    )


def _attach(exc: BaseException, started: ModelCallEvent) -> None:
    attach_context(
        exc,
        "model_call",
        call_type=started.call_type,
        call_id=started.call_id,
        function_id=started.function_id,
        provider=started.provider,
        model_name=started.model_name,
    )


async def invoke_model_call(
    model: Any,
    *,
    call_type: str,
    options: Optional[FunctionOptions],
    attempt: Callable[[CallSettings], Awaitable[R]],
) -> R:
    """
    Run one unary model call through throttle, retry and observers.

    Args:
        model:     Model providing `settings`, `provider`, `model_name`,
                   `retry_policy` and `throttle`.
        call_type: Lifecycle call type (e.g. "text-generation").
        options:   Caller options (function id, setting overrides, run).
        attempt:   Performs one attempt with the merged call settings.
    """
    run = options.run if options is not None else None
    bus = ObserverBus.for_run(run)

    with _call_signal(run) as signal:
        call_settings = CallSettings.build(model.settings, options, signal=signal)

        async with model.throttle.admit(signal):
            started = _started_event(model, call_type, call_settings)
            await bus.notify_started(started)
            t0 = time.monotonic()

            try:
                result = await call_with_retry(
                    lambda: attempt(call_settings),
                    policy=model.retry_policy,
                    signal=signal,
                )
            except asyncio.CancelledError:
                await bus.notify_failed(started.failed(_elapsed_ms(t0), Cancelled("task cancelled")))
                raise
            except Exception as exc:
                LOG.debug("%s call %s failed: %s", call_type, started.call_id, exc)
                _attach(exc, started)
                await bus.notify_failed(started.failed(_elapsed_ms(t0), exc))
                raise

            await bus.notify_finished(started.finished(_elapsed_ms(t0), result))
            return result


def invoke_streaming_model_call(
    model: Any,
    *,
    options: Optional[FunctionOptions],
    open_chunks: Callable[[CallSettings], Awaitable[AsyncIterable[Any]]],
    extract_delta: Callable[[Any], Optional[str]],
    call_type: str = "text-streaming",
) -> TextDeltaStream:
    """
    Streaming counterpart of `invoke_model_call`.

    Nothing happens until the returned stream is iterated: admission,
    the `started` event and the request are all deferred to the first
    pull. Closing the stream before it completes reports a `failed`
    event with a `Cancelled` error.
    """

    async def _gen() -> AsyncIterator[TextDeltaEvent]:
        run = options.run if options is not None else None
        bus = ObserverBus.for_run(run)

        with _call_signal(run) as signal:
            call_settings = CallSettings.build(model.settings, options, signal=signal)

            async with model.throttle.admit(signal):
                started = _started_event(model, call_type, call_settings)
                await bus.notify_started(started)
                t0 = time.monotonic()
                text = ""

                try:
                    chunks = await call_with_retry(
                        lambda: open_chunks(call_settings),
                        policy=model.retry_policy,
                        signal=signal,
                    )
                    events = aggregate_text_deltas(chunks, extract_delta, signal=signal)
                    try:
                        async for event in events:
                            text = event.cumulative_text
                            yield event
                    finally:
                        await events.aclose()

                except GeneratorExit:
                    await bus.notify_failed(
                        started.failed(_elapsed_ms(t0), Cancelled("stream closed before completion"))
                    )
                    raise
                except asyncio.CancelledError:
                    await bus.notify_failed(started.failed(_elapsed_ms(t0), Cancelled("task cancelled")))
                    raise
                except Exception as exc:
                    LOG.debug("%s call %s failed: %s", call_type, started.call_id, exc)
                    _attach(exc, started)
                    await bus.notify_failed(started.failed(_elapsed_ms(t0), exc))
                    raise

                await bus.notify_finished(started.finished(_elapsed_ms(t0), text))

    return TextDeltaStream(_gen())


__all__ = ["invoke_model_call", "invoke_streaming_model_call"]

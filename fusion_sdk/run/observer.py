# fusion_sdk/run/observer.py
# SPDX-License-Identifier: Apache-2.0
"""
Lifecycle observers and the per-call observer bus.

Observers receive `ModelCallEvent`s. Hooks may be plain functions or
coroutines; the bus awaits whatever they return. An observer that raises
is logged and skipped: observability never fails a model call.

Process-wide default observers are held in an immutable tuple that is
replaced on registration, so a call that has already taken its snapshot
is unaffected by later registrations.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Iterable, Optional, Tuple

from fusion_sdk.run.context import RunContext
from fusion_sdk.run.events import ModelCallEvent

LOG = logging.getLogger(__name__)


class ModelCallObserver:
    """Base observer; override the hooks of interest."""

    def on_model_call_started(self, event: ModelCallEvent) -> Any:
        return None

    def on_model_call_finished(self, event: ModelCallEvent) -> Any:
        return None

    def on_model_call_failed(self, event: ModelCallEvent) -> Any:
        return None


_DEFAULT_OBSERVERS: Tuple[ModelCallObserver, ...] = ()


def register_default_observer(observer: ModelCallObserver) -> None:
    """Add an observer notified for every call in this process."""
    global _DEFAULT_OBSERVERS
    if any(existing is observer for existing in _DEFAULT_OBSERVERS):
        return
    _DEFAULT_OBSERVERS = _DEFAULT_OBSERVERS + (observer,)


def get_default_observers() -> Tuple[ModelCallObserver, ...]:
    return _DEFAULT_OBSERVERS


def clear_default_observers() -> None:
    """Drop all default observers (process teardown and tests)."""
    global _DEFAULT_OBSERVERS
    _DEFAULT_OBSERVERS = ()


def _dedupe(observers: Iterable[Any]) -> Tuple[Any, ...]:
    seen = set()
    unique = []
    for observer in observers:
        if id(observer) in seen:
            continue
        seen.add(id(observer))
        unique.append(observer)
    return tuple(unique)


class ObserverBus:
    """Fan-out of lifecycle events to a fixed set of observers."""

    def __init__(self, observers: Iterable[Any] = ()) -> None:
        self._observers = _dedupe(observers)

    @classmethod
    def for_run(cls, run: Optional[RunContext]) -> "ObserverBus":
        """Defaults snapshot followed by the run's own observers."""
        extra = run.observers if run is not None else ()
        return cls(get_default_observers() + tuple(extra))

    @property
    def observers(self) -> Tuple[Any, ...]:
        return self._observers

    async def notify_started(self, event: ModelCallEvent) -> None:
        await self._notify("on_model_call_started", event)

    async def notify_finished(self, event: ModelCallEvent) -> None:
        await self._notify("on_model_call_finished", event)

    async def notify_failed(self, event: ModelCallEvent) -> None:
        await self._notify("on_model_call_failed", event)

    async def _notify(self, hook: str, event: ModelCallEvent) -> None:
        for observer in self._observers:
            fn = getattr(observer, hook, None)
            if fn is None:
                continue
            try:
                result = fn(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                LOG.warning(
                    "observer %s.%s failed for call %s",
                    type(observer).__name__,
                    hook,
                    event.call_id,
                    exc_info=True,
                )


__all__ = [
    "ModelCallObserver",
    "ObserverBus",
    "register_default_observer",
    "get_default_observers",
    "clear_default_observers",
]

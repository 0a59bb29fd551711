# fusion_sdk/run/context.py
# SPDX-License-Identifier: Apache-2.0
"""
Per-call and per-run options passed by callers.

`RunContext` groups calls belonging to one logical operation: they share
a cancellation signal, observers and an optional absolute deadline.
`FunctionOptions` is what every caller-facing function accepts.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from fusion_sdk.core.cancellation import CancellationSignal


def _new_run_id() -> str:
    return uuid.uuid4().hex


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class RunContext:
    """
    Attributes:
        signal:      Cancellation signal shared by every call of the run.
        observers:   Observers notified in addition to the process defaults.
        user_id:     End-user identifier (forwarded where the provider supports it).
        run_id:      Run identifier stamped on every lifecycle event.
        deadline_ms: Absolute deadline (epoch milliseconds).
    """

    signal: Optional[CancellationSignal] = None
    observers: Sequence[Any] = ()
    user_id: Optional[str] = None
    run_id: str = field(default_factory=_new_run_id)
    deadline_ms: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "observers", tuple(self.observers))

    def remaining_ms(self) -> Optional[int]:
        if self.deadline_ms is None:
            return None
        return max(0, self.deadline_ms - int(time.time() * 1000))


@dataclass(frozen=True)
class FunctionOptions:
    """
    Attributes:
        function_id: Label stamped on lifecycle events.
        settings:    Per-call provider setting overrides (read-only).
        run:         Enclosing run, if any.
    """

    function_id: Optional[str] = None
    settings: Mapping[str, Any] = field(default_factory=dict)
    run: Optional[RunContext] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "settings", _freeze(self.settings))


__all__ = ["RunContext", "FunctionOptions"]

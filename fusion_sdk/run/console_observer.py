# fusion_sdk/run/console_observer.py
# SPDX-License-Identifier: Apache-2.0
"""
Ready-made observers.

- ConsoleObserver  one structured JSON line per event (local debugging)
- LoggingObserver  forwards events to a stdlib logger
- MetricsObserver  adapts events to a MetricsSink (observe/counter)
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from typing import Any, Mapping, Optional, Protocol, TextIO

from fusion_sdk.run.events import ModelCallEvent
from fusion_sdk.run.observer import ModelCallObserver

LOG = logging.getLogger(__name__)

_LOCK = threading.Lock()
_JSON_ENCODER = json.JSONEncoder(separators=(",", ":"), ensure_ascii=False, default=str)


class ConsoleObserver(ModelCallObserver):
    """
    Prints each lifecycle event as a prefixed JSON line.

    Args:
        colored:     Enable ANSI colors (only when the output is a TTY).
        output_file: File-like object to write to (default: stdout).
    """

    def __init__(self, *, colored: bool = True, output_file: Optional[TextIO] = None) -> None:
        self.output_file = output_file or sys.stdout
        isatty = getattr(self.output_file, "isatty", None)
        self.colored = colored and bool(isatty and isatty())

    def on_model_call_started(self, event: ModelCallEvent) -> None:
        self._write(event)

    def on_model_call_finished(self, event: ModelCallEvent) -> None:
        self._write(event)

    def on_model_call_failed(self, event: ModelCallEvent) -> None:
        self._write(event)

    def _write(self, event: ModelCallEvent) -> None:
        line = f"{self._prefix(event.kind)} {_JSON_ENCODER.encode(event.to_dict())}"
        with _LOCK:
            print(line, file=self.output_file, flush=True)

    def _prefix(self, kind: str) -> str:
        tag = kind.upper()
        if not self.colored:
            return f"[{tag}]"
        colors = {
            "STARTED": "\x1b[36m",
            "FINISHED": "\x1b[32m",
            "FAILED": "\x1b[31m",
        }
        return f"{colors.get(tag, '')}[{tag}]\x1b[0m"


class LoggingObserver(ModelCallObserver):
    """Forwards lifecycle events to `logger` (DEBUG; failures at WARNING)."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOG

    def on_model_call_started(self, event: ModelCallEvent) -> None:
        self.logger.debug(
            "%s call %s started (%s/%s)",
            event.call_type,
            event.call_id,
            event.provider,
            event.model_name,
        )

    def on_model_call_finished(self, event: ModelCallEvent) -> None:
        self.logger.debug(
            "%s call %s finished in %.1f ms",
            event.call_type,
            event.call_id,
            event.duration_ms or 0.0,
        )

    def on_model_call_failed(self, event: ModelCallEvent) -> None:
        self.logger.warning(
            "%s call %s failed in %.1f ms: %s",
            event.call_type,
            event.call_id,
            event.duration_ms or 0.0,
            event.error,
        )


class MetricsSink(Protocol):
    """
    Metrics collection protocol.

    Implementations must avoid PII and high-cardinality labels.
    """

    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...


class NoopMetrics:
    """No-op metrics sink for tests or minimal deployments."""
    def observe(self, **_: Any) -> None: ...
    def counter(self, **_: Any) -> None: ...


class MetricsObserver(ModelCallObserver):
    """
    Records call latency and outcome on a `MetricsSink`.

    Each terminal event produces one `observe()` (op = call type) and one
    `counter()` named `<kind>_total`, labelled with provider and model.
    """

    def __init__(self, sink: MetricsSink, *, component: str = "model") -> None:
        self.sink = sink
        self.component = component

    def on_model_call_finished(self, event: ModelCallEvent) -> None:
        self._record(event, ok=True, code="OK")

    def on_model_call_failed(self, event: ModelCallEvent) -> None:
        code = getattr(event.error, "code", None) or type(event.error).__name__
        self._record(event, ok=False, code=code)

    def _record(self, event: ModelCallEvent, *, ok: bool, code: str) -> None:
        extra = {"provider": event.provider, "model": event.model_name}
        self.sink.observe(
            component=self.component,
            op=event.call_type,
            ms=event.duration_ms or 0.0,
            ok=ok,
            code=code,
            extra=extra,
        )
        self.sink.counter(
            component=self.component,
            name=f"{event.kind}_total",
            value=1,
            extra=extra,
        )


__all__ = [
    "ConsoleObserver",
    "LoggingObserver",
    "MetricsSink",
    "NoopMetrics",
    "MetricsObserver",
]

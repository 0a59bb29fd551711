# fusion_sdk/run/events.py
# SPDX-License-Identifier: Apache-2.0
"""
Model call lifecycle events.

Each pipeline invocation emits exactly two events: `started`, then either
`finished` or `failed`. The terminal event is derived from the started
event, so the pair always shares `call_id`, `function_id` and `run_id`,
and its timestamp is never earlier than the start.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

STARTED = "started"
FINISHED = "finished"
FAILED = "failed"

CALL_TYPES = (
    "text-generation",
    "text-streaming",
    "text-embedding",
    "transcription",
    "json-generation",
    "image-generation",
)


def _new_call_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ModelCallEvent:
    """
    One lifecycle event of a model call.

    Attributes:
        kind:         "started" | "finished" | "failed".
        call_type:    One of CALL_TYPES.
        call_id:      Unique per invocation; shared by the event pair.
        function_id:  Caller-supplied label for the calling function.
        run_id:       Identifier of the enclosing run, if any.
        provider:     Provider name (e.g. "openai").
        model_name:   Provider model identifier.
        timestamp:    Epoch seconds.
        duration_ms:  Set on terminal events.
        result:       Terminal result value (finished only).
        error:        Terminal error (failed only).
    """

    kind: str
    call_type: str
    provider: str
    model_name: str
    call_id: str = field(default_factory=_new_call_id)
    function_id: Optional[str] = None
    run_id: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    duration_ms: Optional[float] = None
    result: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def started(
        cls,
        *,
        call_type: str,
        provider: str,
        model_name: str,
        function_id: Optional[str] = None,
        run_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> "ModelCallEvent":
        if call_type not in CALL_TYPES:
            raise ValueError(f"unknown call type: {call_type!r}")
        return cls(
            kind=STARTED,
            call_type=call_type,
            provider=provider,
            model_name=model_name,
            function_id=function_id,
            run_id=run_id,
            user_id=user_id,
        )

    def finished(self, duration_ms: float, result: Any = None) -> "ModelCallEvent":
        return self._terminal(FINISHED, duration_ms, result=result)

    def failed(self, duration_ms: float, error: BaseException) -> "ModelCallEvent":
        return self._terminal(FAILED, duration_ms, error=error)

    def _terminal(self, kind: str, duration_ms: float, **values: Any) -> "ModelCallEvent":
        if self.kind != STARTED:
            raise ValueError("terminal events derive from a started event")
        duration_ms = max(0.0, float(duration_ms))
        return replace(
            self,
            kind=kind,
            timestamp=self.timestamp + duration_ms / 1000.0,
            duration_ms=duration_ms,
            **values,
        )

    def to_dict(self) -> dict:
        """JSON-friendly view; results and errors are summarized."""
        data = {
            "kind": self.kind,
            "call_type": self.call_type,
            "call_id": self.call_id,
            "function_id": self.function_id,
            "run_id": self.run_id,
            "provider": self.provider,
            "model_name": self.model_name,
            "timestamp": self.timestamp,
        }
        if self.duration_ms is not None:
            data["duration_ms"] = round(self.duration_ms, 3)
        if self.error is not None:
            data["error"] = {
                "type": type(self.error).__name__,
                "code": getattr(self.error, "code", None),
                "message": str(getattr(self.error, "message", "") or self.error),
            }
        return data


__all__ = ["ModelCallEvent", "CALL_TYPES", "STARTED", "FINISHED", "FAILED"]

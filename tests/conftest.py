# SPDX-License-Identifier: Apache-2.0
"""
Shared pytest fixtures for fusion_sdk.

- `recorder`            an observer capturing every lifecycle event
- default observers     reset around every test
- `run_with`            RunContext factory wired to the recorder
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import pytest

from fusion_sdk.core.cancellation import CancellationSignal
from fusion_sdk.run.context import FunctionOptions, RunContext
from fusion_sdk.run.events import ModelCallEvent
from fusion_sdk.run.observer import ModelCallObserver, clear_default_observers


class RecordingObserver(ModelCallObserver):
    """Collects lifecycle events in arrival order."""

    def __init__(self) -> None:
        self.events: List[ModelCallEvent] = []

    def on_model_call_started(self, event: ModelCallEvent) -> None:
        self.events.append(event)

    def on_model_call_finished(self, event: ModelCallEvent) -> None:
        self.events.append(event)

    def on_model_call_failed(self, event: ModelCallEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: str) -> List[ModelCallEvent]:
        return [e for e in self.events if e.kind == kind]


@pytest.fixture(autouse=True)
def _reset_default_observers():
    """Process-wide observers never leak between tests."""
    clear_default_observers()
    yield
    clear_default_observers()


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="fusion_sdk")
    yield


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def run_with(recorder):
    """
    Build FunctionOptions whose run reports to `recorder`.

    Usage:
        options = run_with(signal=signal, function_id="summarize")
    """

    def make(
        *,
        signal: Optional[CancellationSignal] = None,
        function_id: Optional[str] = None,
        settings: Optional[dict] = None,
        **run_kwargs: Any,
    ) -> FunctionOptions:
        run = RunContext(signal=signal, observers=[recorder], **run_kwargs)
        return FunctionOptions(function_id=function_id, settings=settings or {}, run=run)

    return make

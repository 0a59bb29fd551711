# fusion_sdk/run/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Run context, lifecycle events and observers.
"""

from fusion_sdk.run.context import FunctionOptions, RunContext
from fusion_sdk.run.events import CALL_TYPES, ModelCallEvent
from fusion_sdk.run.observer import (
    ModelCallObserver,
    ObserverBus,
    clear_default_observers,
    get_default_observers,
    register_default_observer,
)
from fusion_sdk.run.console_observer import (
    ConsoleObserver,
    LoggingObserver,
    MetricsObserver,
    MetricsSink,
    NoopMetrics,
)

__all__ = [
    "FunctionOptions",
    "RunContext",
    "CALL_TYPES",
    "ModelCallEvent",
    "ModelCallObserver",
    "ObserverBus",
    "clear_default_observers",
    "get_default_observers",
    "register_default_observer",
    "ConsoleObserver",
    "LoggingObserver",
    "MetricsObserver",
    "MetricsSink",
    "NoopMetrics",
]

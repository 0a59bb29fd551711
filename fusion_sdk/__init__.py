# fusion_sdk/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
fusion_sdk - one model abstraction over many generation providers.

Public API
----------
Caller functions:   generate_text, stream_text, embed_text, embed_texts,
                    transcribe, generate_json, generate_image, as_safe_function
Options:            FunctionOptions, RunContext, CancellationSignal
Policies:           NeverRetry, FixedDelayRetry, ExponentialBackoffRetry,
                    NoopThrottle, MaxConcurrencyThrottle, TokenBucketThrottle
Observers:          ModelCallObserver, ConsoleObserver, LoggingObserver,
                    MetricsObserver, register_default_observer
Errors:             ModelCallError and subclasses
"""

from fusion_sdk.core import (
    ApiConfiguration,
    Cancelled,
    CancellationSignal,
    ConfigurationError,
    DeadlineExceeded,
    ExponentialBackoffRetry,
    FixedDelayRetry,
    HttpStatusError,
    MaxConcurrencyThrottle,
    ModelCallError,
    NeverRetry,
    NoopThrottle,
    RetryLimitExceeded,
    TextDeltaEvent,
    TextDeltaStream,
    TokenBucketThrottle,
    TransportError,
    ValidationError,
)
from fusion_sdk.model import (
    SafeResult,
    TranscriptionInput,
    as_safe_function,
    embed_text,
    embed_texts,
    generate_image,
    generate_json,
    generate_text,
    stream_text,
    transcribe,
)
from fusion_sdk.run import (
    ConsoleObserver,
    FunctionOptions,
    LoggingObserver,
    MetricsObserver,
    ModelCallEvent,
    ModelCallObserver,
    RunContext,
    clear_default_observers,
    register_default_observer,
)

__version__ = "0.1.0"

__all__ = [
    "ApiConfiguration",
    "Cancelled",
    "CancellationSignal",
    "ConfigurationError",
    "DeadlineExceeded",
    "ExponentialBackoffRetry",
    "FixedDelayRetry",
    "HttpStatusError",
    "MaxConcurrencyThrottle",
    "ModelCallError",
    "NeverRetry",
    "NoopThrottle",
    "RetryLimitExceeded",
    "TextDeltaEvent",
    "TextDeltaStream",
    "TokenBucketThrottle",
    "TransportError",
    "ValidationError",
    "SafeResult",
    "TranscriptionInput",
    "as_safe_function",
    "embed_text",
    "embed_texts",
    "generate_image",
    "generate_json",
    "generate_text",
    "stream_text",
    "transcribe",
    "ConsoleObserver",
    "FunctionOptions",
    "LoggingObserver",
    "MetricsObserver",
    "ModelCallEvent",
    "ModelCallObserver",
    "RunContext",
    "clear_default_observers",
    "register_default_observer",
]

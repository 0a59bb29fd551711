# fusion_sdk/core/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Model invocation core: errors, cancellation, retry, throttling, HTTP
execution and streaming.
"""

from fusion_sdk.core.errors import (
    ModelCallError,
    TransportError,
    HttpStatusError,
    Cancelled,
    DeadlineExceeded,
    RetryLimitExceeded,
    ValidationError,
    ConfigurationError,
    is_retryable,
)
from fusion_sdk.core.cancellation import CancellationSignal
from fusion_sdk.core.retry import (
    RetryDecision,
    RetryPolicy,
    NeverRetry,
    FixedDelayRetry,
    ExponentialBackoffRetry,
    call_with_retry,
)
from fusion_sdk.core.throttle import (
    AdmissionToken,
    Throttle,
    NoopThrottle,
    MaxConcurrencyThrottle,
    TokenBucketThrottle,
)
from fusion_sdk.core.api_config import ApiConfiguration, BearerApiConfiguration
from fusion_sdk.core.http import (
    ApiRequest,
    MultipartForm,
    ResponseLines,
    call_api,
    open_stream,
    json_response_handler,
    text_response_handler,
    default_failure_handler,
)
from fusion_sdk.core.streaming import (
    TextDeltaEvent,
    TextDeltaStream,
    aggregate_text_deltas,
    parse_json_lines,
    parse_sse_data,
    parse_sse_json,
)
from fusion_sdk.core.error_context import attach_context, get_context

__all__ = [
    "ModelCallError",
    "TransportError",
    "HttpStatusError",
    "Cancelled",
    "DeadlineExceeded",
    "RetryLimitExceeded",
    "ValidationError",
    "ConfigurationError",
    "is_retryable",
    "CancellationSignal",
    "RetryDecision",
    "RetryPolicy",
    "NeverRetry",
    "FixedDelayRetry",
    "ExponentialBackoffRetry",
    "call_with_retry",
    "AdmissionToken",
    "Throttle",
    "NoopThrottle",
    "MaxConcurrencyThrottle",
    "TokenBucketThrottle",
    "ApiConfiguration",
    "BearerApiConfiguration",
    "ApiRequest",
    "MultipartForm",
    "ResponseLines",
    "call_api",
    "open_stream",
    "json_response_handler",
    "text_response_handler",
    "default_failure_handler",
    "TextDeltaEvent",
    "TextDeltaStream",
    "aggregate_text_deltas",
    "parse_json_lines",
    "parse_sse_data",
    "parse_sse_json",
    "attach_context",
    "get_context",
]

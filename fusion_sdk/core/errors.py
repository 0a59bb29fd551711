# fusion_sdk/core/errors.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalized error taxonomy for model calls.

Every failure that leaves the invocation core is a `ModelCallError`
subclass, so callers, the retry loop and observers can make consistent,
machine-actionable decisions without inspecting message text.

Taxonomy
--------
- TransportError      network-level failure (connect/read/timeout); retryable
- HttpStatusError     non-2xx response, shaped by the provider's failure
                      handler; retryable only for rate-limit / server classes
- Cancelled           cooperative cancellation; never retryable, terminal
- DeadlineExceeded    cancellation triggered by a timeout or deadline
- RetryLimitExceeded  retry budget exhausted; wraps the last underlying error
- ValidationError     response did not match the expected shape
- ConfigurationError  local misconfiguration (e.g. missing API key)

Retry decisions are taken from the class-level `retryable` flag (or the
instance flag for `HttpStatusError`), never from the message.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence


class ModelCallError(Exception):
    """
    Base exception for all model call failures.

    Attributes:
        message:
            Human-readable description (safe for logs and clients).
        code:
            Upper-snake-case machine code.
        retry_after_ms:
            Optional backoff hint from the provider (Retry-After header).
        details:
            Additional JSON-safe context (never include secrets).
    """

    retryable: bool = False
    default_code: str = "MODEL_CALL_ERROR"

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        retry_after_ms: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.retry_after_ms = retry_after_ms
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.retry_after_ms is not None:
            base += f" retry_after_ms={self.retry_after_ms}"
        if self.details:
            base += f" details={self.details}"
        return base


class TransportError(ModelCallError):
    """
    Network-level failure between the SDK and the provider.

    Covers connection errors, broken streams and transport timeouts.
    """

    retryable = True
    default_code = "TRANSPORT_ERROR"


class HttpStatusError(ModelCallError):
    """
    Structured, provider-specific error for a non-2xx response.

    Provider failure handlers construct this (or a subclass) from the
    response body. `is_retryable` lets a provider enumerate its own
    retryable statuses; when omitted, 408, 429 and 5xx are retryable.
    """

    default_code = "HTTP_STATUS_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        provider: Optional[str] = None,
        url: Optional[str] = None,
        data: Any = None,
        is_retryable: Optional[bool] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = int(status_code)
        self.provider = provider
        self.url = url
        self.data = data
        if is_retryable is None:
            is_retryable = self.status_code in (408, 429) or self.status_code >= 500
        self.retryable = bool(is_retryable)

    def __str__(self) -> str:
        base = super().__str__()
        parts = [f"status={self.status_code}"]
        if self.provider:
            parts.append(f"provider={self.provider}")
        return f"{base} ({', '.join(parts)})"


class Cancelled(ModelCallError):
    """
    The call was cancelled through its cancellation signal.

    Never retried; always terminal for the call that observed it.
    """

    default_code = "CANCELLED"

    def __init__(self, message: str = "call cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


class DeadlineExceeded(Cancelled):
    """
    Cancellation triggered by a timeout or an expired run deadline.
    """

    default_code = "DEADLINE_EXCEEDED"

    def __init__(self, message: str = "deadline exceeded", **kwargs: Any):
        super().__init__(message, **kwargs)


class RetryLimitExceeded(ModelCallError):
    """
    The retry budget was exhausted.

    `cause` is the final attempt's error; `errors` holds every attempt's
    error in order. The original cause is also chained via `__cause__`.
    """

    default_code = "RETRY_LIMIT_EXCEEDED"

    def __init__(
        self,
        *,
        cause: BaseException,
        errors: Sequence[BaseException] = (),
        attempts: int,
    ):
        super().__init__(
            f"failed after {attempts} attempts: {cause}",
            details={"attempts": attempts, "last_error": type(cause).__name__},
        )
        self.cause = cause
        self.errors: List[BaseException] = list(errors) or [cause]
        self.attempts = attempts


class ValidationError(ModelCallError):
    """
    A response did not match the shape the adapter expects.

    Indicates a provider contract violation or an adapter bug, so it is
    never retried.
    """

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "response validation failed",
        *,
        value: Any = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.value = value
        self.cause = cause


class ConfigurationError(ModelCallError):
    """Local misconfiguration, for example a missing API key."""

    default_code = "CONFIGURATION_ERROR"


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether an error may be re-attempted.

    Only `ModelCallError` subclasses carry a retry tag; anything else
    (programming errors, unexpected exceptions) is never retried.
    """
    if isinstance(error, Cancelled):
        return False
    if isinstance(error, ModelCallError):
        return bool(error.retryable)
    return False


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
]

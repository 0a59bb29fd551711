# fusion_sdk/providers/anthropic/api.py
# SPDX-License-Identifier: Apache-2.0
"""
Anthropic API configuration and error mapping.

Retryable statuses: 429 (rate limit), 529 (overloaded) and other 5xx.
Errors arrive as `{"type": "error", "error": {"type": ..., "message": ...}}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.errors import HttpStatusError
from fusion_sdk.core.http import error_message, parse_retry_after, read_error_payload, response_url

ANTHROPIC_API_VERSION = "2023-06-01"

_RETRYABLE_STATUS = frozenset({429, 529})


@dataclass(frozen=True)
class AnthropicApiConfiguration(ApiConfiguration):
    base_url: str = "https://api.anthropic.com/v1"
    api_key_env: Optional[str] = "ANTHROPIC_API_KEY"
    api_version: str = ANTHROPIC_API_VERSION

    provider_name = "Anthropic"

    def auth_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.resolve_api_key(),
            "anthropic-version": self.api_version,
        }


class AnthropicErrorBody(pydantic.BaseModel):
    type: str
    message: str


class AnthropicErrorData(pydantic.BaseModel):
    type: str = "error"
    error: AnthropicErrorBody


class AnthropicError(HttpStatusError):
    default_code = "ANTHROPIC_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_type: Optional[str] = None,
        **kwargs: Any,
    ):
        if kwargs.get("is_retryable") is None:
            kwargs["is_retryable"] = status_code in _RETRYABLE_STATUS or status_code >= 500
        super().__init__(message, status_code=status_code, provider="anthropic", **kwargs)
        self.error_type = error_type


def failed_anthropic_call_response_handler(response: httpx.Response) -> AnthropicError:
    payload = read_error_payload(response)
    error_type = None
    try:
        body = AnthropicErrorData.model_validate(payload).error
        message = body.message
        error_type = body.type
    except pydantic.ValidationError:
        message = error_message(payload, f"Anthropic API error (status={response.status_code})")
    return AnthropicError(
        message,
        status_code=response.status_code,
        error_type=error_type,
        url=response_url(response),
        data=payload,
        retry_after_ms=parse_retry_after(response),
    )


__all__ = [
    "ANTHROPIC_API_VERSION",
    "AnthropicApiConfiguration",
    "AnthropicError",
    "AnthropicErrorData",
    "failed_anthropic_call_response_handler",
]

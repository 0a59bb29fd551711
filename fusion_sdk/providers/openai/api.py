# fusion_sdk/providers/openai/api.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI API configuration, error mapping and stream framing.

Retryable statuses
------------------
- 429 rate limit, except `insufficient_quota` (billing; retrying cannot help)
- 5xx server errors
Everything else (400, 401, 403, 404, 422, ...) fails immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx
import pydantic

from fusion_sdk.core.api_config import BearerApiConfiguration
from fusion_sdk.core.errors import HttpStatusError
from fusion_sdk.core.http import error_message, parse_retry_after, read_error_payload, response_url
from fusion_sdk.core.streaming import parse_sse_json


@dataclass(frozen=True)
class OpenAIApiConfiguration(BearerApiConfiguration):
    base_url: str = "https://api.openai.com/v1"
    api_key_env: Optional[str] = "OPENAI_API_KEY"

    provider_name = "OpenAI"


class OpenAIErrorBody(pydantic.BaseModel):
    message: str
    type: Optional[str] = None
    param: Any = None
    code: Optional[str] = None


class OpenAIErrorData(pydantic.BaseModel):
    error: OpenAIErrorBody


class OpenAIError(HttpStatusError):
    """Structured error returned by the OpenAI API."""

    default_code = "OPENAI_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_type: Optional[str] = None,
        **kwargs: Any,
    ):
        if kwargs.get("is_retryable") is None:
            kwargs["is_retryable"] = (
                status_code == 429 and error_type != "insufficient_quota"
            ) or status_code >= 500
        super().__init__(message, status_code=status_code, provider="openai", **kwargs)
        self.error_type = error_type


def failed_openai_call_response_handler(response: httpx.Response) -> OpenAIError:
    payload = read_error_payload(response)
    error_type = None
    try:
        body = OpenAIErrorData.model_validate(payload).error
        message = body.message
        error_type = body.type or body.code
    except pydantic.ValidationError:
        message = error_message(payload, f"OpenAI API error (status={response.status_code})")
    return OpenAIError(
        message,
        status_code=response.status_code,
        error_type=error_type,
        url=response_url(response),
        data=payload,
        retry_after_ms=parse_retry_after(response),
    )


def openai_sse_stream(lines: Any) -> AsyncIterator[Any]:
    """SSE chunks terminated by `data: [DONE]`."""
    return parse_sse_json(lines, done_marker="[DONE]")


__all__ = [
    "OpenAIApiConfiguration",
    "OpenAIError",
    "OpenAIErrorData",
    "failed_openai_call_response_handler",
    "openai_sse_stream",
]

# fusion_sdk/providers/cohere/api.py
# SPDX-License-Identifier: Apache-2.0
"""
Cohere API configuration and error mapping.

Retryable statuses: 429 (rate limit) and 5xx. Cohere reports errors as
`{"message": "..."}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pydantic

from fusion_sdk.core.api_config import BearerApiConfiguration
from fusion_sdk.core.errors import HttpStatusError
from fusion_sdk.core.http import error_message, parse_retry_after, read_error_payload, response_url


@dataclass(frozen=True)
class CohereApiConfiguration(BearerApiConfiguration):
    base_url: str = "https://api.cohere.ai/v1"
    api_key_env: Optional[str] = "COHERE_API_KEY"

    provider_name = "Cohere"


class CohereErrorData(pydantic.BaseModel):
    message: str


class CohereError(HttpStatusError):
    default_code = "COHERE_ERROR"

    def __init__(self, message: str, *, status_code: int, **kwargs: Any):
        if kwargs.get("is_retryable") is None:
            kwargs["is_retryable"] = status_code == 429 or status_code >= 500
        super().__init__(message, status_code=status_code, provider="cohere", **kwargs)


def failed_cohere_call_response_handler(response: httpx.Response) -> CohereError:
    payload = read_error_payload(response)
    try:
        message = CohereErrorData.model_validate(payload).message
    except pydantic.ValidationError:
        message = error_message(payload, f"Cohere API error (status={response.status_code})")
    return CohereError(
        message,
        status_code=response.status_code,
        url=response_url(response),
        data=payload,
        retry_after_ms=parse_retry_after(response),
    )


__all__ = [
    "CohereApiConfiguration",
    "CohereError",
    "CohereErrorData",
    "failed_cohere_call_response_handler",
]

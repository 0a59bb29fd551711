# fusion_sdk/providers/anthropic/text.py
# SPDX-License-Identifier: Apache-2.0
"""
Anthropic text generation model (Messages API, `/messages`).

Streaming uses Server-Sent Events; text arrives in `content_block_delta`
events (`delta.text`). An `error` event mid-stream is raised as an
`AnthropicError` after the deltas already delivered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.core.streaming import TextDeltaStream, parse_sse_json
from fusion_sdk.model.base import ApiModel, TextGenerationModel, TextStreamingModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.anthropic.api import (
    AnthropicApiConfiguration,
    AnthropicError,
    failed_anthropic_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions

AnthropicPrompt = Union[str, Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class AnthropicTextGenerationSettings:
    model: str = "claude-3-haiku-20240307"
    max_completion_tokens: int = 1024
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[Tuple[str, ...]] = None
    forward_user_id: bool = False


class AnthropicContentBlock(pydantic.BaseModel):
    type: str
    text: Optional[str] = None


class AnthropicUsage(pydantic.BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class AnthropicMessageResponse(pydantic.BaseModel):
    id: str
    type: str = "message"
    role: str = "assistant"
    model: str
    content: List[AnthropicContentBlock]
    stop_reason: Optional[str] = None
    usage: Optional[AnthropicUsage] = None


def _to_messages(prompt: AnthropicPrompt) -> List[Dict[str, Any]]:
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return [dict(m) for m in prompt]


def _anthropic_delta(chunk: Any) -> Optional[str]:
    if not isinstance(chunk, dict):
        return None
    kind = chunk.get("type")
    if kind == "content_block_delta":
        return (chunk.get("delta") or {}).get("text")
    if kind == "error":
        error = chunk.get("error") or {}
        error_type = error.get("type")
        raise AnthropicError(
            error.get("message") or "stream error",
            status_code=529 if error_type == "overloaded_error" else 500,
            error_type=error_type,
            data=chunk,
        )
    return None


@dataclass(frozen=True)
class AnthropicTextGenerationModel(ApiModel, TextGenerationModel, TextStreamingModel):
    settings: AnthropicTextGenerationSettings = field(
        default_factory=AnthropicTextGenerationSettings
    )
    api: ApiConfiguration = field(default_factory=AnthropicApiConfiguration)

    provider = "anthropic"

    def failure_handler(self) -> FailureHandler:
        return failed_anthropic_call_response_handler

    def _request_builder(self, prompt: AnthropicPrompt, *, stream: bool):
        def build(call: CallSettings) -> ApiRequest:
            s: AnthropicTextGenerationSettings = call.settings
            return ApiRequest(
                url=self.api.url("/messages"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "max_tokens": s.max_completion_tokens,
                    "system": s.system_prompt,
                    "messages": _to_messages(prompt),
                    "temperature": s.temperature,
                    "top_p": s.top_p,
                    "top_k": s.top_k,
                    "stop_sequences": s.stop_sequences,
                    "metadata": (
                        {"user_id": call.user_id}
                        if s.forward_user_id and call.user_id
                        else None
                    ),
                    "stream": True if stream else None,
                },
            )

        return build

    async def generate(
        self, prompt: AnthropicPrompt, options: Optional[FunctionOptions] = None
    ) -> AnthropicMessageResponse:
        return await self._invoke(
            call_type="text-generation",
            options=options,
            build_request=self._request_builder(prompt, stream=False),
            response_handler=json_response_handler(AnthropicMessageResponse),
        )

    def extract_output(self, response: AnthropicMessageResponse) -> str:
        return "".join(block.text or "" for block in response.content if block.type == "text")

    def stream(
        self, prompt: AnthropicPrompt, options: Optional[FunctionOptions] = None
    ) -> TextDeltaStream:
        return self._invoke_stream(
            options=options,
            build_request=self._request_builder(prompt, stream=True),
            stream_format=parse_sse_json,
            extract_delta=_anthropic_delta,
        )


__all__ = [
    "AnthropicTextGenerationSettings",
    "AnthropicMessageResponse",
    "AnthropicTextGenerationModel",
]

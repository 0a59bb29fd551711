# fusion_sdk/providers/openai/chat.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI chat completion model (`/chat/completions`).

Prompts are either a plain string (sent as a single user message) or a
list of `{"role": ..., "content": ...}` messages. JSON generation uses
the API's JSON mode (`response_format={"type": "json_object"}`).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.errors import ValidationError
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.core.streaming import TextDeltaStream
from fusion_sdk.model.base import (
    ApiModel,
    JsonGenerationModel,
    TextGenerationModel,
    TextStreamingModel,
)
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    failed_openai_call_response_handler,
    openai_sse_stream,
)
from fusion_sdk.providers.openai.text import OpenAIUsage
from fusion_sdk.run.context import FunctionOptions

ChatPrompt = Union[str, Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class OpenAIChatSettings:
    model: str = "gpt-4o-mini"
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    n: Optional[int] = None
    stop: Optional[Union[str, Tuple[str, ...]]] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    seed: Optional[int] = None
    system_prompt: Optional[str] = None
    forward_user_id: bool = False


class OpenAIChatMessage(pydantic.BaseModel):
    role: str
    content: Optional[str] = None


class OpenAIChatChoice(pydantic.BaseModel):
    message: OpenAIChatMessage
    index: int = 0
    finish_reason: Optional[str] = None


class OpenAIChatCompletion(pydantic.BaseModel):
    id: str
    object: str = "chat.completion"
    created: int = 0
    model: str
    choices: List[OpenAIChatChoice]
    usage: Optional[OpenAIUsage] = None


def to_chat_messages(prompt: ChatPrompt, system_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(prompt, str):
        messages = [{"role": "user", "content": prompt}]
    else:
        messages = [dict(m) for m in prompt]
    if system_prompt and not any(m.get("role") == "system" for m in messages):
        messages.insert(0, {"role": "system", "content": system_prompt})
    return messages


def _chat_delta(chunk: Any) -> Optional[str]:
    choices = chunk.get("choices") if isinstance(chunk, dict) else None
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content")


@dataclass(frozen=True)
class OpenAIChatModel(ApiModel, TextGenerationModel, TextStreamingModel, JsonGenerationModel):
    """OpenAI chat model; supports generation, streaming and JSON generation."""

    settings: OpenAIChatSettings = field(default_factory=OpenAIChatSettings)
    api: ApiConfiguration = field(default_factory=OpenAIApiConfiguration)

    provider = "openai"

    def failure_handler(self) -> FailureHandler:
        return failed_openai_call_response_handler

    def _request_builder(
        self,
        prompt: ChatPrompt,
        *,
        stream: bool = False,
        json_mode: bool = False,
    ):
        def build(call: CallSettings) -> ApiRequest:
            s: OpenAIChatSettings = call.settings
            return ApiRequest(
                url=self.api.url("/chat/completions"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "messages": to_chat_messages(prompt, s.system_prompt),
                    "max_tokens": s.max_completion_tokens,
                    "temperature": s.temperature,
                    "top_p": s.top_p,
                    "n": s.n,
                    "stop": s.stop,
                    "presence_penalty": s.presence_penalty,
                    "frequency_penalty": s.frequency_penalty,
                    "seed": s.seed,
                    "user": call.user_id if s.forward_user_id else None,
                    "response_format": {"type": "json_object"} if json_mode else None,
                    "stream": True if stream else None,
                },
            )

        return build

    async def generate(
        self, prompt: ChatPrompt, options: Optional[FunctionOptions] = None
    ) -> OpenAIChatCompletion:
        return await self._invoke(
            call_type="text-generation",
            options=options,
            build_request=self._request_builder(prompt),
            response_handler=json_response_handler(OpenAIChatCompletion),
        )

    def extract_output(self, response: OpenAIChatCompletion) -> str:
        return response.choices[0].message.content or ""

    def stream(self, prompt: ChatPrompt, options: Optional[FunctionOptions] = None) -> TextDeltaStream:
        return self._invoke_stream(
            options=options,
            build_request=self._request_builder(prompt, stream=True),
            stream_format=openai_sse_stream,
            extract_delta=_chat_delta,
        )

    async def generate_json(
        self, prompt: ChatPrompt, options: Optional[FunctionOptions] = None
    ) -> OpenAIChatCompletion:
        return await self._invoke(
            call_type="json-generation",
            options=options,
            build_request=self._request_builder(prompt, json_mode=True),
            response_handler=json_response_handler(OpenAIChatCompletion),
        )

    def extract_json(self, response: OpenAIChatCompletion) -> Any:
        content = self.extract_output(response)
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValidationError("model output is not valid JSON", value=content, cause=exc) from exc


__all__ = [
    "OpenAIChatSettings",
    "OpenAIChatCompletion",
    "OpenAIChatModel",
    "to_chat_messages",
]

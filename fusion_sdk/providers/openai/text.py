# fusion_sdk/providers/openai/text.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI text completion model (`/completions`).

Usage
-----
    model = OpenAITextGenerationModel(
        settings=OpenAITextGenerationSettings(model="gpt-3.5-turbo-instruct", temperature=0.7),
    )

    text = await generate_text(
        model.with_settings(max_completion_tokens=500),
        "Write a short story about a robot learning to love:\n\n",
    )
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import pydantic
import tiktoken

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.core.streaming import TextDeltaStream
from fusion_sdk.model.base import ApiModel, TextGenerationModel, TextStreamingModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    failed_openai_call_response_handler,
    openai_sse_stream,
)
from fusion_sdk.run.context import FunctionOptions

logger = logging.getLogger(__name__)

# Context window (prompt + completion tokens) per model.
# See https://platform.openai.com/docs/models/
OPENAI_TEXT_MODELS: Dict[str, int] = {
    "gpt-3.5-turbo-instruct": 4097,
    "davinci-002": 16384,
    "babbage-002": 16384,
    "text-davinci-003": 4096,
    "text-davinci-002": 4096,
    "code-davinci-002": 8000,
    "text-curie-001": 2048,
    "text-babbage-001": 2048,
    "text-ada-001": 2048,
    "davinci": 2048,
    "curie": 2048,
    "babbage": 2048,
    "ada": 2048,
}


@functools.lru_cache(maxsize=32)
def get_tiktoken_encoding(model: str) -> "tiktoken.Encoding":
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        logger.debug("no tiktoken mapping for %s; using cl100k_base", model)
        return tiktoken.get_encoding("cl100k_base")


@dataclass(frozen=True)
class OpenAITextGenerationSettings:
    model: str = "gpt-3.5-turbo-instruct"
    suffix: Optional[str] = None
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    n: Optional[int] = None
    logprobs: Optional[int] = None
    echo: Optional[bool] = None
    stop: Optional[Union[str, Tuple[str, ...]]] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    best_of: Optional[int] = None
    forward_user_id: bool = False


class OpenAICompletionChoice(pydantic.BaseModel):
    text: str
    index: int = 0
    finish_reason: Optional[str] = None
    logprobs: Any = None


class OpenAIUsage(pydantic.BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class OpenAITextCompletion(pydantic.BaseModel):
    id: str
    object: str = "text_completion"
    created: int = 0
    model: str
    choices: List[OpenAICompletionChoice]
    usage: Optional[OpenAIUsage] = None


def _completion_delta(chunk: Any) -> Optional[str]:
    choices = chunk.get("choices") if isinstance(chunk, dict) else None
    if not choices:
        return None
    return choices[0].get("text")


@dataclass(frozen=True)
class OpenAITextGenerationModel(ApiModel, TextGenerationModel, TextStreamingModel):
    """OpenAI completion model; supports generation, streaming and token counting."""

    settings: OpenAITextGenerationSettings = field(default_factory=OpenAITextGenerationSettings)
    api: ApiConfiguration = field(default_factory=OpenAIApiConfiguration)

    provider = "openai"

    @property
    def context_window_size(self) -> Optional[int]:
        return OPENAI_TEXT_MODELS.get(self.settings.model)

    def count_prompt_tokens(self, prompt: str) -> int:
        return len(get_tiktoken_encoding(self.settings.model).encode(prompt))

    def failure_handler(self) -> FailureHandler:
        return failed_openai_call_response_handler

    def _request_builder(self, prompt: str, *, stream: bool):
        def build(call: CallSettings) -> ApiRequest:
            s: OpenAITextGenerationSettings = call.settings
            return ApiRequest(
                url=self.api.url("/completions"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "prompt": prompt,
                    "suffix": s.suffix,
                    "max_tokens": s.max_completion_tokens,
                    "temperature": s.temperature,
                    "top_p": s.top_p,
                    "n": s.n,
                    "logprobs": s.logprobs,
                    "echo": s.echo,
                    "stop": s.stop,
                    "presence_penalty": s.presence_penalty,
                    "frequency_penalty": s.frequency_penalty,
                    "best_of": s.best_of,
                    "user": call.user_id if s.forward_user_id else None,
                    "stream": True if stream else None,
                },
            )

        return build

    async def generate(
        self, prompt: str, options: Optional[FunctionOptions] = None
    ) -> OpenAITextCompletion:
        return await self._invoke(
            call_type="text-generation",
            options=options,
            build_request=self._request_builder(prompt, stream=False),
            response_handler=json_response_handler(OpenAITextCompletion),
        )

    def extract_output(self, response: OpenAITextCompletion) -> str:
        return response.choices[0].text

    def stream(self, prompt: str, options: Optional[FunctionOptions] = None) -> TextDeltaStream:
        return self._invoke_stream(
            options=options,
            build_request=self._request_builder(prompt, stream=True),
            stream_format=openai_sse_stream,
            extract_delta=_completion_delta,
        )


__all__ = [
    "OPENAI_TEXT_MODELS",
    "OpenAITextGenerationSettings",
    "OpenAITextCompletion",
    "OpenAITextGenerationModel",
    "get_tiktoken_encoding",
]

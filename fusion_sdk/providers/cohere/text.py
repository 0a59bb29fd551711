# fusion_sdk/providers/cohere/text.py
# SPDX-License-Identifier: Apache-2.0
"""
Cohere text generation model (`/generate`).

Streaming responses are newline-delimited JSON: one
`{"text": ..., "is_finished": false}` object per delta, then a final
object with `"is_finished": true`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.core.streaming import TextDeltaStream, parse_json_lines
from fusion_sdk.model.base import ApiModel, TextGenerationModel, TextStreamingModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.cohere.api import (
    CohereApiConfiguration,
    failed_cohere_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions

COHERE_TEXT_GENERATION_MODELS = {
    "command": 4096,
    "command-light": 4096,
    "command-nightly": 4096,
    "command-light-nightly": 4096,
}


@dataclass(frozen=True)
class CohereTextGenerationSettings:
    model: str = "command"
    num_generations: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    k: Optional[int] = None
    p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    end_sequences: Optional[Tuple[str, ...]] = None
    stop_sequences: Optional[Tuple[str, ...]] = None
    return_likelihoods: Optional[str] = None  # "GENERATION" | "ALL" | "NONE"
    truncate: Optional[str] = None  # "NONE" | "START" | "END"


class CohereGeneration(pydantic.BaseModel):
    id: str
    text: str
    finish_reason: Optional[str] = None


class CohereTextGenerationResponse(pydantic.BaseModel):
    id: str
    generations: List[CohereGeneration]
    prompt: Optional[str] = None
    meta: Optional[dict] = None


def _cohere_delta(chunk: Any) -> Optional[str]:
    if not isinstance(chunk, dict) or chunk.get("is_finished"):
        return None
    return chunk.get("text")


@dataclass(frozen=True)
class CohereTextGenerationModel(ApiModel, TextGenerationModel, TextStreamingModel):
    settings: CohereTextGenerationSettings = field(default_factory=CohereTextGenerationSettings)
    api: ApiConfiguration = field(default_factory=CohereApiConfiguration)

    provider = "cohere"

    @property
    def context_window_size(self) -> Optional[int]:
        return COHERE_TEXT_GENERATION_MODELS.get(self.settings.model)

    def failure_handler(self) -> FailureHandler:
        return failed_cohere_call_response_handler

    def _request_builder(self, prompt: str, *, stream: bool):
        def build(call: CallSettings) -> ApiRequest:
            s: CohereTextGenerationSettings = call.settings
            return ApiRequest(
                url=self.api.url("/generate"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "prompt": prompt,
                    "num_generations": s.num_generations,
                    "max_tokens": s.max_completion_tokens,
                    "temperature": s.temperature,
                    "k": s.k,
                    "p": s.p,
                    "frequency_penalty": s.frequency_penalty,
                    "presence_penalty": s.presence_penalty,
                    "end_sequences": s.end_sequences,
                    "stop_sequences": s.stop_sequences,
                    "return_likelihoods": s.return_likelihoods,
                    "truncate": s.truncate,
                    "stream": True if stream else None,
                },
            )

        return build

    async def generate(
        self, prompt: str, options: Optional[FunctionOptions] = None
    ) -> CohereTextGenerationResponse:
        return await self._invoke(
            call_type="text-generation",
            options=options,
            build_request=self._request_builder(prompt, stream=False),
            response_handler=json_response_handler(CohereTextGenerationResponse),
        )

    def extract_output(self, response: CohereTextGenerationResponse) -> str:
        return response.generations[0].text

    def stream(self, prompt: str, options: Optional[FunctionOptions] = None) -> TextDeltaStream:
        return self._invoke_stream(
            options=options,
            build_request=self._request_builder(prompt, stream=True),
            stream_format=parse_json_lines,
            extract_delta=_cohere_delta,
        )


__all__ = [
    "COHERE_TEXT_GENERATION_MODELS",
    "CohereTextGenerationSettings",
    "CohereTextGenerationResponse",
    "CohereTextGenerationModel",
]

# fusion_sdk/providers/openai/transcription.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI transcription model (`/audio/transcriptions`, multipart upload).

The `response_format` setting selects both what the API returns and how
it is decoded:

    json          -> OpenAITranscriptionJsonResponse
    verbose_json  -> OpenAITranscriptionVerboseJsonResponse (segments, language)
    text|srt|vtt  -> str
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.errors import ConfigurationError
from fusion_sdk.core.http import (
    ApiRequest,
    FailureHandler,
    MultipartForm,
    json_response_handler,
    text_response_handler,
)
from fusion_sdk.model.base import ApiModel, TranscriptionInput, TranscriptionModel
from fusion_sdk.model.settings import CallSettings, merge_settings
from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    failed_openai_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions


class OpenAITranscriptionJsonResponse(pydantic.BaseModel):
    text: str


class OpenAITranscriptionSegment(pydantic.BaseModel):
    id: int
    seek: int = 0
    start: float
    end: float
    text: str
    tokens: List[int] = []
    temperature: float = 0.0
    avg_logprob: float = 0.0
    compression_ratio: float = 0.0
    no_speech_prob: float = 0.0


class OpenAITranscriptionVerboseJsonResponse(pydantic.BaseModel):
    task: str = "transcribe"
    language: str
    duration: float
    segments: List[OpenAITranscriptionSegment] = []
    text: str


RESPONSE_FORMAT_HANDLERS: Dict[str, Callable[[httpx.Response], Any]] = {
    "json": json_response_handler(OpenAITranscriptionJsonResponse),
    "verbose_json": json_response_handler(OpenAITranscriptionVerboseJsonResponse),
    "text": text_response_handler(),
    "srt": text_response_handler(),
    "vtt": text_response_handler(),
}

TranscriptionResponse = Union[
    OpenAITranscriptionJsonResponse, OpenAITranscriptionVerboseJsonResponse, str
]


@dataclass(frozen=True)
class OpenAITranscriptionSettings:
    model: str = "whisper-1"
    response_format: str = "verbose_json"
    prompt: Optional[str] = None
    temperature: Optional[float] = None
    language: Optional[str] = None  # ISO-639-1


@dataclass(frozen=True)
class OpenAITranscriptionModel(ApiModel, TranscriptionModel):
    settings: OpenAITranscriptionSettings = field(default_factory=OpenAITranscriptionSettings)
    api: ApiConfiguration = field(default_factory=OpenAIApiConfiguration)

    provider = "openai"

    def failure_handler(self) -> FailureHandler:
        return failed_openai_call_response_handler

    async def transcribe(
        self, audio: TranscriptionInput, options: Optional[FunctionOptions] = None
    ) -> TranscriptionResponse:
        overrides = options.settings if options is not None else {}
        fmt = merge_settings(self.settings, overrides).response_format
        if fmt not in RESPONSE_FORMAT_HANDLERS:
            raise ConfigurationError(f"unsupported transcription response format: {fmt}")

        def build(call: CallSettings) -> ApiRequest:
            s: OpenAITranscriptionSettings = call.settings
            return ApiRequest(
                url=self.api.url("/audio/transcriptions"),
                headers=self.api.request_headers(),
                form=MultipartForm(
                    fields={
                        "model": s.model,
                        "response_format": s.response_format,
                        "prompt": s.prompt,
                        "temperature": s.temperature,
                        "language": s.language,
                    },
                    files={"file": (audio.filename, audio.data, audio.mime_type)},
                ),
            )

        return await self._invoke(
            call_type="transcription",
            options=options,
            build_request=build,
            response_handler=RESPONSE_FORMAT_HANDLERS[fmt],
        )

    def extract_transcription(self, response: TranscriptionResponse) -> str:
        if isinstance(response, str):
            return response
        return response.text


__all__ = [
    "OpenAITranscriptionSettings",
    "OpenAITranscriptionModel",
    "OpenAITranscriptionJsonResponse",
    "OpenAITranscriptionVerboseJsonResponse",
    "RESPONSE_FORMAT_HANDLERS",
]

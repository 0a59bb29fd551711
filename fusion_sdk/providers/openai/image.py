# fusion_sdk/providers/openai/image.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI image generation model (`/images/generations`, base64 output).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.model.base import ApiModel, ImageGenerationModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    failed_openai_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions


@dataclass(frozen=True)
class OpenAIImageGenerationSettings:
    model: str = "dall-e-3"
    size: Optional[str] = None  # e.g. "1024x1024"
    quality: Optional[str] = None
    style: Optional[str] = None
    n: Optional[int] = None
    forward_user_id: bool = False


class OpenAIImageData(pydantic.BaseModel):
    b64_json: str
    revised_prompt: Optional[str] = None


class OpenAIImageGenerationResponse(pydantic.BaseModel):
    created: int = 0
    data: List[OpenAIImageData]


@dataclass(frozen=True)
class OpenAIImageGenerationModel(ApiModel, ImageGenerationModel):
    settings: OpenAIImageGenerationSettings = field(default_factory=OpenAIImageGenerationSettings)
    api: ApiConfiguration = field(default_factory=OpenAIApiConfiguration)

    provider = "openai"

    def failure_handler(self) -> FailureHandler:
        return failed_openai_call_response_handler

    async def generate_image(
        self, prompt: str, options: Optional[FunctionOptions] = None
    ) -> OpenAIImageGenerationResponse:
        def build(call: CallSettings) -> ApiRequest:
            s: OpenAIImageGenerationSettings = call.settings
            return ApiRequest(
                url=self.api.url("/images/generations"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "prompt": prompt,
                    "size": s.size,
                    "quality": s.quality,
                    "style": s.style,
                    "n": s.n,
                    "response_format": "b64_json",
                    "user": call.user_id if s.forward_user_id else None,
                },
            )

        return await self._invoke(
            call_type="image-generation",
            options=options,
            build_request=build,
            response_handler=json_response_handler(OpenAIImageGenerationResponse),
        )

    def extract_image(self, response: OpenAIImageGenerationResponse) -> str:
        return response.data[0].b64_json


__all__ = [
    "OpenAIImageGenerationSettings",
    "OpenAIImageGenerationResponse",
    "OpenAIImageGenerationModel",
]

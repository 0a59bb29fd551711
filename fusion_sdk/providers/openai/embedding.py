# fusion_sdk/providers/openai/embedding.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI text embedding model (`/embeddings`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.model.base import ApiModel, TextEmbeddingModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    failed_openai_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions

# Embedding dimensions per model.
OPENAI_TEXT_EMBEDDING_MODELS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


@dataclass(frozen=True)
class OpenAITextEmbeddingSettings:
    model: str = "text-embedding-3-small"
    dimensions: Optional[int] = None
    forward_user_id: bool = False


class OpenAIEmbeddingItem(pydantic.BaseModel):
    object: str = "embedding"
    embedding: List[float]
    index: int


class OpenAIEmbeddingUsage(pydantic.BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class OpenAITextEmbeddingResponse(pydantic.BaseModel):
    object: str = "list"
    data: List[OpenAIEmbeddingItem]
    model: str
    usage: Optional[OpenAIEmbeddingUsage] = None


@dataclass(frozen=True)
class OpenAITextEmbeddingModel(ApiModel, TextEmbeddingModel):
    settings: OpenAITextEmbeddingSettings = field(default_factory=OpenAITextEmbeddingSettings)
    api: ApiConfiguration = field(default_factory=OpenAIApiConfiguration)

    provider = "openai"
    max_texts_per_call = 2048

    @property
    def embedding_dimensions(self) -> Optional[int]:
        return self.settings.dimensions or OPENAI_TEXT_EMBEDDING_MODELS.get(self.settings.model)

    def failure_handler(self) -> FailureHandler:
        return failed_openai_call_response_handler

    async def embed(
        self, texts: Sequence[str], options: Optional[FunctionOptions] = None
    ) -> OpenAITextEmbeddingResponse:
        inputs = list(texts)

        def build(call: CallSettings) -> ApiRequest:
            s: OpenAITextEmbeddingSettings = call.settings
            return ApiRequest(
                url=self.api.url("/embeddings"),
                headers=self.api.request_headers(),
                json_body={
                    "model": s.model,
                    "input": inputs,
                    "dimensions": s.dimensions,
                    "user": call.user_id if s.forward_user_id else None,
                },
            )

        return await self._invoke(
            call_type="text-embedding",
            options=options,
            build_request=build,
            response_handler=json_response_handler(OpenAITextEmbeddingResponse),
        )

    def extract_embeddings(self, response: OpenAITextEmbeddingResponse) -> List[List[float]]:
        return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]


__all__ = [
    "OPENAI_TEXT_EMBEDDING_MODELS",
    "OpenAITextEmbeddingSettings",
    "OpenAITextEmbeddingResponse",
    "OpenAITextEmbeddingModel",
]

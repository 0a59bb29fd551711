# fusion_sdk/providers/cohere/embedding.py
# SPDX-License-Identifier: Apache-2.0
"""
Cohere text embedding model (`/embed`).

The API accepts at most 96 texts per call; `embed_texts` splits larger
inputs accordingly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pydantic

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.errors import ConfigurationError
from fusion_sdk.core.http import ApiRequest, FailureHandler, json_response_handler
from fusion_sdk.model.base import ApiModel, TextEmbeddingModel
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.providers.cohere.api import (
    CohereApiConfiguration,
    failed_cohere_call_response_handler,
)
from fusion_sdk.run.context import FunctionOptions

COHERE_TEXT_EMBEDDING_MODELS = {
    "embed-english-light-v2.0": 1024,
    "embed-english-v2.0": 4096,
    "embed-multilingual-v2.0": 768,
}


@dataclass(frozen=True)
class CohereTextEmbeddingSettings:
    model: str = "embed-english-light-v2.0"
    truncate: Optional[str] = None  # "NONE" | "START" | "END"


class CohereTextEmbeddingResponse(pydantic.BaseModel):
    id: str
    texts: List[str] = []
    embeddings: List[List[float]]
    meta: Optional[dict] = None


@dataclass(frozen=True)
class CohereTextEmbeddingModel(ApiModel, TextEmbeddingModel):
    settings: CohereTextEmbeddingSettings = field(default_factory=CohereTextEmbeddingSettings)
    api: ApiConfiguration = field(default_factory=CohereApiConfiguration)

    provider = "cohere"
    max_texts_per_call = 96

    @property
    def embedding_dimensions(self) -> Optional[int]:
        return COHERE_TEXT_EMBEDDING_MODELS.get(self.settings.model)

    def failure_handler(self) -> FailureHandler:
        return failed_cohere_call_response_handler

    async def embed(
        self, texts: Sequence[str], options: Optional[FunctionOptions] = None
    ) -> CohereTextEmbeddingResponse:
        inputs = list(texts)
        if len(inputs) > self.max_texts_per_call:
            raise ConfigurationError(
                f"Cohere accepts at most {self.max_texts_per_call} texts per call, got {len(inputs)}",
                details={"max_texts_per_call": self.max_texts_per_call, "texts": len(inputs)},
            )

        def build(call: CallSettings) -> ApiRequest:
            s: CohereTextEmbeddingSettings = call.settings
            return ApiRequest(
                url=self.api.url("/embed"),
                headers=self.api.request_headers(),
                json_body={"model": s.model, "texts": inputs, "truncate": s.truncate},
            )

        return await self._invoke(
            call_type="text-embedding",
            options=options,
            build_request=build,
            response_handler=json_response_handler(CohereTextEmbeddingResponse),
        )

    def extract_embeddings(self, response: CohereTextEmbeddingResponse) -> List[List[float]]:
        return response.embeddings


__all__ = [
    "COHERE_TEXT_EMBEDDING_MODELS",
    "CohereTextEmbeddingSettings",
    "CohereTextEmbeddingResponse",
    "CohereTextEmbeddingModel",
]

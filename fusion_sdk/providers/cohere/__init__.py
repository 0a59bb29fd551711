# fusion_sdk/providers/cohere/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Cohere provider: text generation and embedding models.
"""

from fusion_sdk.providers.cohere.api import (
    CohereApiConfiguration,
    CohereError,
    CohereErrorData,
    failed_cohere_call_response_handler,
)
from fusion_sdk.providers.cohere.text import (
    CohereTextGenerationModel,
    CohereTextGenerationSettings,
)
from fusion_sdk.providers.cohere.embedding import (
    CohereTextEmbeddingModel,
    CohereTextEmbeddingSettings,
)

__all__ = [
    "CohereApiConfiguration",
    "CohereError",
    "CohereErrorData",
    "failed_cohere_call_response_handler",
    "CohereTextGenerationModel",
    "CohereTextGenerationSettings",
    "CohereTextEmbeddingModel",
    "CohereTextEmbeddingSettings",
]

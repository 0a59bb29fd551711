# fusion_sdk/providers/openai/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
OpenAI provider: completion, chat, embedding, transcription and image models.
"""

from fusion_sdk.providers.openai.api import (
    OpenAIApiConfiguration,
    OpenAIError,
    failed_openai_call_response_handler,
)
from fusion_sdk.providers.openai.text import (
    OPENAI_TEXT_MODELS,
    OpenAITextGenerationModel,
    OpenAITextGenerationSettings,
)
from fusion_sdk.providers.openai.chat import OpenAIChatModel, OpenAIChatSettings
from fusion_sdk.providers.openai.embedding import (
    OpenAITextEmbeddingModel,
    OpenAITextEmbeddingSettings,
)
from fusion_sdk.providers.openai.transcription import (
    OpenAITranscriptionModel,
    OpenAITranscriptionSettings,
)
from fusion_sdk.providers.openai.image import (
    OpenAIImageGenerationModel,
    OpenAIImageGenerationSettings,
)

__all__ = [
    "OpenAIApiConfiguration",
    "OpenAIError",
    "failed_openai_call_response_handler",
    "OPENAI_TEXT_MODELS",
    "OpenAITextGenerationModel",
    "OpenAITextGenerationSettings",
    "OpenAIChatModel",
    "OpenAIChatSettings",
    "OpenAITextEmbeddingModel",
    "OpenAITextEmbeddingSettings",
    "OpenAITranscriptionModel",
    "OpenAITranscriptionSettings",
    "OpenAIImageGenerationModel",
    "OpenAIImageGenerationSettings",
]

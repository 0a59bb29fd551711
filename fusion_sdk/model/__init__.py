# fusion_sdk/model/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Model abstraction, call pipeline and caller-facing functions.
"""

from fusion_sdk.model.settings import CallSettings
from fusion_sdk.model.pipeline import invoke_model_call, invoke_streaming_model_call
from fusion_sdk.model.base import (
    Model,
    ApiModel,
    TranscriptionInput,
    TextGenerationModel,
    TextStreamingModel,
    TextEmbeddingModel,
    TranscriptionModel,
    JsonGenerationModel,
    ImageGenerationModel,
)
from fusion_sdk.model.functions import (
    generate_text,
    stream_text,
    embed_text,
    embed_texts,
    transcribe,
    generate_json,
    generate_image,
    SafeResult,
    as_safe_function,
)

__all__ = [
    "CallSettings",
    "invoke_model_call",
    "invoke_streaming_model_call",
    "Model",
    "ApiModel",
    "TranscriptionInput",
    "TextGenerationModel",
    "TextStreamingModel",
    "TextEmbeddingModel",
    "TranscriptionModel",
    "JsonGenerationModel",
    "ImageGenerationModel",
    "generate_text",
    "stream_text",
    "embed_text",
    "embed_texts",
    "transcribe",
    "generate_json",
    "generate_image",
    "SafeResult",
    "as_safe_function",
]

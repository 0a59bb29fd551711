# fusion_sdk/model/functions.py
# SPDX-License-Identifier: Apache-2.0
"""
Caller-facing functions.

These are the entry points applications use; each accepts any model that
supports the call type, so swapping providers does not change call sites:

    text = await generate_text(model, "Write a haiku about rivers")

    async with stream_text(model, "Tell me a story") as stream:
        async for event in stream:
            print(event.delta, end="")

    vectors = await embed_texts(embedding_model, ["a", "b", "c"])
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Type, TypeVar

import pydantic

from fusion_sdk.core.errors import ValidationError
from fusion_sdk.core.streaming import TextDeltaStream
from fusion_sdk.model.base import (
    ImageGenerationModel,
    JsonGenerationModel,
    TextEmbeddingModel,
    TextGenerationModel,
    TextStreamingModel,
    TranscriptionInput,
    TranscriptionModel,
)
from fusion_sdk.run.context import FunctionOptions

LOG = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=pydantic.BaseModel)


async def generate_text(
    model: TextGenerationModel,
    prompt: Any,
    *,
    options: Optional[FunctionOptions] = None,
) -> str:
    response = await model.generate(prompt, options)
    return model.extract_output(response)


def stream_text(
    model: TextStreamingModel,
    prompt: Any,
    *,
    options: Optional[FunctionOptions] = None,
) -> TextDeltaStream:
    """
    Lazily stream text deltas.

    The request is only sent once iteration starts; the stream can be
    consumed once.
    """
    return model.stream(prompt, options)


async def embed_text(
    model: TextEmbeddingModel,
    text: str,
    *,
    options: Optional[FunctionOptions] = None,
) -> List[float]:
    embeddings = await embed_texts(model, [text], options=options)
    return embeddings[0]


async def embed_texts(
    model: TextEmbeddingModel,
    texts: Sequence[str],
    *,
    options: Optional[FunctionOptions] = None,
) -> List[List[float]]:
    """
    Embed `texts`, splitting them into provider-sized batches.

    Batches run concurrently (subject to the model's throttle); the result
    preserves input order. The first failing batch cancels the others.
    """
    texts = list(texts)
    if not texts:
        return []

    size = model.max_texts_per_call or len(texts)
    batches = [texts[i:i + size] for i in range(0, len(texts), size)]

    async def _embed(batch: List[str]) -> List[List[float]]:
        response = await model.embed(batch, options)
        vectors = model.extract_embeddings(response)
        if len(vectors) != len(batch):
            raise ValidationError(
                f"expected {len(batch)} embeddings, got {len(vectors)}",
                value=len(vectors),
            )
        return vectors

    if len(batches) == 1:
        return await _embed(batches[0])

    LOG.debug("embedding %d texts in %d batches", len(texts), len(batches))
    tasks = [asyncio.ensure_future(_embed(batch)) for batch in batches]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        # One batch failed or the caller went away; the rest are abandoned.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return [vector for batch_vectors in results for vector in batch_vectors]


async def transcribe(
    model: TranscriptionModel,
    audio: TranscriptionInput,
    *,
    options: Optional[FunctionOptions] = None,
) -> str:
    response = await model.transcribe(audio, options)
    return model.extract_transcription(response)


async def generate_json(
    model: JsonGenerationModel,
    prompt: Any,
    *,
    schema: Optional[Type[M]] = None,
    options: Optional[FunctionOptions] = None,
) -> Any:
    """
    Generate a JSON value, optionally validated against a pydantic model.

    Raises:
        ValidationError: the value does not match `schema`.
    """
    response = await model.generate_json(prompt, options)
    value = model.extract_json(response)
    if schema is None:
        return value
    try:
        return schema.model_validate(value)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"generated JSON does not match {schema.__name__}",
            value=value,
            cause=exc,
        ) from exc


async def generate_image(
    model: ImageGenerationModel,
    prompt: str,
    *,
    options: Optional[FunctionOptions] = None,
) -> str:
    """Base64-encoded image."""
    response = await model.generate_image(prompt, options)
    return model.extract_image(response)


# =============================================================================
# Safe variants
# =============================================================================

@dataclass(frozen=True)
class SafeResult(Generic[T]):
    ok: bool
    output: Optional[T] = None
    error: Optional[BaseException] = None


def as_safe_function(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[SafeResult[T]]]:
    """
    Wrap an async caller function so it returns a `SafeResult` instead of
    raising. Task cancellation still propagates.
    """

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> SafeResult[T]:
        try:
            return SafeResult(ok=True, output=await fn(*args, **kwargs))
        except Exception as exc:
            return SafeResult(ok=False, error=exc)

    return wrapper


__all__ = [
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

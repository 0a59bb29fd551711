# fusion_sdk/model/base.py
# SPDX-License-Identifier: Apache-2.0
"""
Model abstraction.

A model is a frozen value: provider settings plus (for HTTP-backed
models) an `ApiConfiguration`. `with_settings()` returns a new instance;
nothing is mutated in place, so models can be shared freely between
concurrent calls.

Capabilities are expressed as small call-type mixins. A provider model
inherits `ApiModel` and the mixins it supports, and implements each
mixin by composing hooks:

- a request builder      (CallSettings -> ApiRequest)
- a response handler     (2xx httpx.Response -> typed response)
- a failure handler      (non-2xx httpx.Response -> HttpStatusError)
- for streaming, a framing function and a delta extractor

`ApiModel._invoke` / `_invoke_stream` feed those hooks through the model
call pipeline.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterable, Callable, ClassVar, List, Optional, Sequence, TypeVar

import httpx

from fusion_sdk.core.api_config import ApiConfiguration
from fusion_sdk.core.http import (
    ApiRequest,
    FailureHandler,
    ResponseLines,
    call_api,
    default_failure_handler,
    open_stream,
)
from fusion_sdk.core.retry import NeverRetry, RetryPolicy
from fusion_sdk.core.streaming import TextDeltaStream
from fusion_sdk.core.throttle import NoopThrottle, Throttle
from fusion_sdk.model.pipeline import invoke_model_call, invoke_streaming_model_call
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.run.context import FunctionOptions

R = TypeVar("R")
ModelT = TypeVar("ModelT", bound="Model")

RequestBuilder = Callable[[CallSettings], ApiRequest]
StreamFormat = Callable[[ResponseLines], AsyncIterable[Any]]

_NEVER_RETRY = NeverRetry()
_NOOP_THROTTLE = NoopThrottle()


@dataclass(frozen=True)
class Model:
    """
    Base of all models.

    `settings` is a frozen provider-settings dataclass; its `model` field
    (when present) names the provider model.
    """

    settings: Any

    provider: ClassVar[str] = "unknown"

    @property
    def model_name(self) -> str:
        return str(getattr(self.settings, "model", "") or "")

    @property
    def retry_policy(self) -> RetryPolicy:
        return _NEVER_RETRY

    @property
    def throttle(self) -> Throttle:
        return _NOOP_THROTTLE

    def with_settings(self: ModelT, **overrides: Any) -> ModelT:
        """New model with `overrides` applied to its settings."""
        return replace(self, settings=replace(self.settings, **overrides))


@dataclass(frozen=True)
class ApiModel(Model):
    """Model backed by an HTTP API."""

    api: ApiConfiguration = field(default_factory=ApiConfiguration)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.api.retry

    @property
    def throttle(self) -> Throttle:
        return self.api.throttle

    def with_api(self: ModelT, **overrides: Any) -> ModelT:
        """New model with `overrides` applied to its API configuration."""
        return replace(self, api=replace(self.api, **overrides))

    def failure_handler(self) -> FailureHandler:
        return default_failure_handler(self.provider)

    async def _invoke(
        self,
        *,
        call_type: str,
        options: Optional[FunctionOptions],
        build_request: RequestBuilder,
        response_handler: Callable[[httpx.Response], R],
    ) -> R:
        failure_handler = self.failure_handler()

        async def attempt(call_settings: CallSettings) -> R:
            return await call_api(
                build_request(call_settings),
                success_handler=response_handler,
                failure_handler=failure_handler,
                signal=call_settings.signal,
                client=self.api.client,
                timeout_s=self.api.timeout_s,
            )

        return await invoke_model_call(
            self, call_type=call_type, options=options, attempt=attempt
        )

    def _invoke_stream(
        self,
        *,
        options: Optional[FunctionOptions],
        build_request: RequestBuilder,
        stream_format: StreamFormat,
        extract_delta: Callable[[Any], Optional[str]],
    ) -> TextDeltaStream:
        failure_handler = self.failure_handler()

        async def open_chunks(call_settings: CallSettings) -> AsyncIterable[Any]:
            lines = await open_stream(
                build_request(call_settings),
                failure_handler=failure_handler,
                signal=call_settings.signal,
                client=self.api.client,
                timeout_s=self.api.timeout_s,
            )
            return stream_format(lines)

        return invoke_streaming_model_call(
            self,
            options=options,
            open_chunks=open_chunks,
            extract_delta=extract_delta,
        )


# =============================================================================
# Call-type variants
# =============================================================================

@dataclass(frozen=True)
class TranscriptionInput:
    """Audio payload for transcription models."""

    data: bytes
    filename: str = "audio.mp3"
    mime_type: str = "audio/mpeg"


class TextGenerationModel(abc.ABC):
    @abc.abstractmethod
    async def generate(self, prompt: Any, options: Optional[FunctionOptions] = None) -> Any:
        """Raw provider response for `prompt`."""

    @abc.abstractmethod
    def extract_output(self, response: Any) -> str:
        """Generated text from a raw response."""


class TextStreamingModel(abc.ABC):
    @abc.abstractmethod
    def stream(self, prompt: Any, options: Optional[FunctionOptions] = None) -> TextDeltaStream:
        """Lazy stream of text deltas for `prompt`."""


class TextEmbeddingModel(abc.ABC):
    #: Upper bound of texts per provider call; None means unbounded.
    max_texts_per_call: ClassVar[Optional[int]] = None

    @abc.abstractmethod
    async def embed(self, texts: Sequence[str], options: Optional[FunctionOptions] = None) -> Any:
        ...

    @abc.abstractmethod
    def extract_embeddings(self, response: Any) -> List[List[float]]:
        ...


class TranscriptionModel(abc.ABC):
    @abc.abstractmethod
    async def transcribe(
        self, audio: TranscriptionInput, options: Optional[FunctionOptions] = None
    ) -> Any:
        ...

    @abc.abstractmethod
    def extract_transcription(self, response: Any) -> str:
        ...


class JsonGenerationModel(abc.ABC):
    @abc.abstractmethod
    async def generate_json(self, prompt: Any, options: Optional[FunctionOptions] = None) -> Any:
        ...

    @abc.abstractmethod
    def extract_json(self, response: Any) -> Any:
        """Decoded JSON value from a raw response."""


class ImageGenerationModel(abc.ABC):
    @abc.abstractmethod
    async def generate_image(self, prompt: str, options: Optional[FunctionOptions] = None) -> Any:
        ...

    @abc.abstractmethod
    def extract_image(self, response: Any) -> str:
        """Base64-encoded image from a raw response."""


__all__ = [
    "Model",
    "ApiModel",
    "TranscriptionInput",
    "TextGenerationModel",
    "TextStreamingModel",
    "TextEmbeddingModel",
    "TranscriptionModel",
    "JsonGenerationModel",
    "ImageGenerationModel",
]

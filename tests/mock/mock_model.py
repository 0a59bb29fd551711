# tests/mock/mock_model.py
# SPDX-License-Identifier: Apache-2.0
"""
Scripted models for pipeline and caller-function tests.

A `Script` is an ordered list of outcomes consumed one per attempt; the
last outcome repeats once the list is exhausted. An outcome is:

- a value            returned by the attempt (generation)
- a list of chunks   opened as a stream (streaming); a chunk that is an
                     exception is raised when reached
- an exception       raised by the attempt

Every attempt records its `CallSettings`, so tests can assert attempt
counts and the merged settings each attempt saw.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Optional, Sequence

from fusion_sdk.core.cancellation import cancellable_sleep
from fusion_sdk.core.errors import HttpStatusError
from fusion_sdk.core.retry import NeverRetry, RetryPolicy
from fusion_sdk.core.streaming import TextDeltaStream
from fusion_sdk.core.throttle import NoopThrottle, Throttle
from fusion_sdk.model.base import (
    Model,
    TextEmbeddingModel,
    TextGenerationModel,
    TextStreamingModel,
)
from fusion_sdk.model.pipeline import invoke_model_call, invoke_streaming_model_call
from fusion_sdk.model.settings import CallSettings
from fusion_sdk.run.context import FunctionOptions


@dataclass(frozen=True)
class MockModelSettings:
    model: str = "mock-model"
    temperature: Optional[float] = None
    max_completion_tokens: Optional[int] = None


class Script:
    def __init__(self, *outcomes: Any, delay_s: float = 0.0, chunk_delay_s: float = 0.0) -> None:
        if not outcomes:
            raise ValueError("a script needs at least one outcome")
        self._outcomes = list(outcomes)
        self.delay_s = delay_s
        self.chunk_delay_s = chunk_delay_s
        self.calls: List[CallSettings] = []
        self.sources: List["ChunkSource"] = []

    @property
    def attempts(self) -> int:
        return len(self.calls)

    async def next(self, call: CallSettings) -> Any:
        self.calls.append(call)
        if self.delay_s:
            await cancellable_sleep(call.signal, self.delay_s)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ChunkSource:
    """Async chunk iterator that remembers whether it was closed."""

    def __init__(self, chunks: Sequence[Any], delay_s: float = 0.0) -> None:
        self._chunks = list(chunks)
        self._delay_s = delay_s
        self.closed = False
        self.pulled = 0

    def __aiter__(self) -> "ChunkSource":
        return self

    async def __anext__(self) -> Any:
        if self.closed or not self._chunks:
            raise StopAsyncIteration
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        chunk = self._chunks.pop(0)
        self.pulled += 1
        if isinstance(chunk, BaseException):
            raise chunk
        return chunk

    async def aclose(self) -> None:
        self.closed = True


@dataclass(frozen=True)
class ScriptedModel(Model, TextGenerationModel, TextStreamingModel):
    """Text model whose attempts follow a `Script`."""

    settings: MockModelSettings = field(default_factory=MockModelSettings)
    script: Script = field(default_factory=lambda: Script("ok"))
    retry: RetryPolicy = field(default_factory=NeverRetry)
    gate: Throttle = field(default_factory=NoopThrottle)

    provider = "mock"

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.retry

    @property
    def throttle(self) -> Throttle:
        return self.gate

    async def generate(self, prompt: Any, options: Optional[FunctionOptions] = None) -> Any:
        return await invoke_model_call(
            self,
            call_type="text-generation",
            options=options,
            attempt=self.script.next,
        )

    def extract_output(self, response: Any) -> str:
        return str(response)

    def stream(self, prompt: Any, options: Optional[FunctionOptions] = None) -> TextDeltaStream:
        async def open_chunks(call: CallSettings) -> ChunkSource:
            chunks = await self.script.next(call)
            source = ChunkSource(chunks, delay_s=self.script.chunk_delay_s)
            self.script.sources.append(source)
            return source

        return invoke_streaming_model_call(
            self,
            options=options,
            open_chunks=open_chunks,
            extract_delta=lambda chunk: chunk,
        )


@dataclass(frozen=True)
class ScriptedEmbeddingModel(Model, TextEmbeddingModel):
    """
    Embedding model returning `[len(text), position-in-batch]` per text.

    `batches` records every batch sent, in call order; `completed` only
    those that returned. A batch containing `fail_on` is rejected with a
    400; the others take `delay_s` to answer.
    """

    settings: MockModelSettings = field(default_factory=lambda: MockModelSettings(model="mock-embed"))
    batches: List[List[str]] = field(default_factory=list)
    completed: List[List[str]] = field(default_factory=list)
    drop_last: bool = False
    fail_on: Optional[str] = None
    delay_s: float = 0.0

    provider = "mock"
    max_texts_per_call: ClassVar[Optional[int]] = 2

    async def embed(self, texts: Sequence[str], options: Optional[FunctionOptions] = None) -> Any:
        batch = list(texts)

        async def attempt(call: CallSettings) -> List[List[float]]:
            self.batches.append(batch)
            await asyncio.sleep(0)
            if self.fail_on is not None and self.fail_on in batch:
                raise HttpStatusError(f"rejected {self.fail_on!r}", status_code=400, provider="mock")
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            self.completed.append(batch)
            vectors = [[float(len(t)), float(i)] for i, t in enumerate(batch)]
            return vectors[:-1] if self.drop_last else vectors

        return await invoke_model_call(
            self, call_type="text-embedding", options=options, attempt=attempt
        )

    def extract_embeddings(self, response: Any) -> List[List[float]]:
        return response

# SPDX-License-Identifier: Apache-2.0
"""
Providers — OpenAI adapters against a mocked HTTP transport.

Covers request shape and auth, response decoding, SSE streaming with the
[DONE] marker, error mapping (retryable vs. terminal statuses), and the
multipart transcription upload.
"""

import json

import httpx
import pytest

from fusion_sdk.core.errors import ConfigurationError, RetryLimitExceeded, ValidationError
from fusion_sdk.core.retry import FixedDelayRetry, NeverRetry
from fusion_sdk.model.base import TranscriptionInput
from fusion_sdk.model.functions import (
    embed_texts,
    generate_image,
    generate_json,
    generate_text,
    stream_text,
    transcribe,
)
from fusion_sdk.providers.openai import (
    OpenAIApiConfiguration,
    OpenAIChatModel,
    OpenAIChatSettings,
    OpenAIError,
    OpenAIImageGenerationModel,
    OpenAITextEmbeddingModel,
    OpenAITextGenerationModel,
    OpenAITranscriptionModel,
    failed_openai_call_response_handler,
)
from fusion_sdk.providers.openai import text as openai_text
from fusion_sdk.run.context import FunctionOptions, RunContext

pytestmark = pytest.mark.asyncio


def _api(client, retry=None):
    return OpenAIApiConfiguration(api_key="sk-test", client=client, retry=retry or NeverRetry())


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _chat_completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o-mini",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }


def _sse(*payloads):
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


async def test_chat_generate_sends_messages_and_auth(recorder):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_chat_completion("Hi there"))

    async with _client(handler) as client:
        model = OpenAIChatModel(
            settings=OpenAIChatSettings(temperature=0.3, system_prompt="Be brief.", forward_user_id=True),
            api=_api(client),
        )
        options = FunctionOptions(run=RunContext(observers=[recorder], user_id="user-9"))
        text = await generate_text(model, "Hello", options=options)

    assert text == "Hi there"
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello"},
        ],
        "temperature": 0.3,
        "user": "user-9",
    }
    assert recorder.kinds == ["started", "finished"]
    assert recorder.events[0].provider == "openai"
    assert recorder.events[0].model_name == "gpt-4o-mini"


async def test_chat_stream_reads_sse_until_done():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["stream"] is True
        body = _sse(
            {"choices": [{"index": 0, "delta": {"role": "assistant"}}]},
            {"choices": [{"index": 0, "delta": {"content": "Hel"}}]},
            {"choices": [{"index": 0, "delta": {"content": "lo"}}]},
            {"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
            "[DONE]",
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    async with _client(handler) as client:
        model = OpenAIChatModel(api=_api(client))
        deltas = [event.delta async for event in stream_text(model, "Hi")]

    assert deltas == ["Hel", "lo"]


async def test_completion_model_generate_and_stream():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/v1/completions"
        assert body["max_tokens"] == 20
        if body.get("stream"):
            return httpx.Response(
                200,
                content=_sse({"choices": [{"text": "once "}]}, {"choices": [{"text": "upon"}]}, "[DONE]"),
            )
        return httpx.Response(
            200,
            json={
                "id": "cmpl-1",
                "object": "text_completion",
                "created": 1,
                "model": "gpt-3.5-turbo-instruct",
                "choices": [{"text": "once upon", "index": 0, "finish_reason": "length"}],
            },
        )

    async with _client(handler) as client:
        model = OpenAITextGenerationModel(api=_api(client)).with_settings(max_completion_tokens=20)
        assert await generate_text(model, "Tell a story") == "once upon"
        assert await stream_text(model, "Tell a story").collect() == "once upon"


async def test_rate_limit_is_retried_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, json={"error": {"message": "Rate limit", "type": "rate_limit_error"}})
        return httpx.Response(200, json=_chat_completion("ok"))

    async with _client(handler) as client:
        model = OpenAIChatModel(api=_api(client, FixedDelayRetry(max_retries=2, delay_ms=0)))
        assert await generate_text(model, "Hi") == "ok"

    assert len(calls) == 2


async def test_server_errors_exhaust_budget():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "server exploded", "type": "server_error"}})

    async with _client(handler) as client:
        model = OpenAIChatModel(api=_api(client, FixedDelayRetry(max_retries=1, delay_ms=0)))
        with pytest.raises(RetryLimitExceeded) as excinfo:
            await generate_text(model, "Hi")

    cause = excinfo.value.cause
    assert isinstance(cause, OpenAIError)
    assert cause.status_code == 500
    assert excinfo.value.attempts == 2


async def test_client_error_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            400,
            json={"error": {"message": "Invalid model", "type": "invalid_request_error", "param": "model"}},
        )

    async with _client(handler) as client:
        model = OpenAIChatModel(api=_api(client, FixedDelayRetry(max_retries=3, delay_ms=0)))
        with pytest.raises(OpenAIError) as excinfo:
            await generate_text(model, "Hi")

    assert len(calls) == 1
    assert excinfo.value.message == "Invalid model"
    assert excinfo.value.error_type == "invalid_request_error"
    assert not excinfo.value.retryable


@pytest.mark.parametrize(
    "status, error_type, retryable",
    [
        (429, "rate_limit_error", True),
        (429, "insufficient_quota", False),
        (500, "server_error", True),
        (503, None, True),
        (401, "invalid_api_key", False),
        (404, None, False),
    ],
)
async def test_error_retryability(status, error_type, retryable):
    payload = {"error": {"message": "x", "type": error_type}}
    response = httpx.Response(status, json=payload)
    error = failed_openai_call_response_handler(response)
    assert error.retryable is retryable
    assert error.provider == "openai"


async def test_unstructured_error_body_falls_back_to_text():
    error = failed_openai_call_response_handler(httpx.Response(502, text="Bad Gateway"))
    assert error.message == "Bad Gateway"
    assert error.retryable


async def test_missing_api_key_is_configuration_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json=_chat_completion("never"))

    async with _client(handler) as client:
        model = OpenAIChatModel(api=OpenAIApiConfiguration(client=client, retry=NeverRetry()))
        with pytest.raises(ConfigurationError) as excinfo:
            await generate_text(model, "Hi")

    assert "OPENAI_API_KEY" in excinfo.value.message
    assert sent == []


async def test_api_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert OpenAIApiConfiguration().request_headers() == {"Authorization": "Bearer sk-env"}


async def test_generate_json_uses_json_mode():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_chat_completion('{"answer": 42}'))

    async with _client(handler) as client:
        value = await generate_json(OpenAIChatModel(api=_api(client)), "answer?")

    assert value == {"answer": 42}
    assert seen["body"]["response_format"] == {"type": "json_object"}


async def test_generate_json_invalid_output_is_validation_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat_completion("not json"))

    async with _client(handler) as client:
        with pytest.raises(ValidationError):
            await generate_json(OpenAIChatModel(api=_api(client)), "answer?")


async def test_embeddings_sorted_by_index():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "object": "list",
                "model": "text-embedding-3-small",
                "data": [
                    {"object": "embedding", "index": 1, "embedding": [0.2, 0.2]},
                    {"object": "embedding", "index": 0, "embedding": [0.1, 0.1]},
                ],
            },
        )

    async with _client(handler) as client:
        vectors = await embed_texts(OpenAITextEmbeddingModel(api=_api(client)), ["first", "second"])

    assert vectors == [[0.1, 0.1], [0.2, 0.2]]
    assert seen["body"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}


async def test_transcription_multipart_and_verbose_json():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(
            200,
            json={
                "task": "transcribe",
                "language": "english",
                "duration": 1.5,
                "text": "Hello world",
                "segments": [{"id": 0, "start": 0.0, "end": 1.5, "text": "Hello world"}],
            },
        )

    async with _client(handler) as client:
        model = OpenAITranscriptionModel(api=_api(client))
        text = await transcribe(model, TranscriptionInput(data=b"RIFF....", filename="hello.wav", mime_type="audio/wav"))

    assert text == "Hello world"
    assert seen["path"] == "/v1/audio/transcriptions"
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'filename="hello.wav"' in seen["body"]
    assert b"verbose_json" in seen["body"]


async def test_transcription_text_format_returns_plain_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain transcript")

    async with _client(handler) as client:
        model = OpenAITranscriptionModel(api=_api(client))
        options = FunctionOptions(settings={"response_format": "text"})
        text = await transcribe(model, TranscriptionInput(data=b"..."), options=options)

    assert text == "plain transcript"


async def test_transcription_rejects_unknown_format():
    model = OpenAITranscriptionModel(api=_api(None)).with_settings(response_format="mp3")
    with pytest.raises(ConfigurationError):
        await transcribe(model, TranscriptionInput(data=b"..."))


async def test_image_generation_returns_base64():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"created": 1, "data": [{"b64_json": "aGVsbG8="}]})

    async with _client(handler) as client:
        image = await generate_image(
            OpenAIImageGenerationModel(api=_api(client)).with_settings(size="1024x1024"),
            "a lighthouse at dusk",
        )

    assert image == "aGVsbG8="
    assert seen["body"]["response_format"] == "b64_json"
    assert seen["body"]["size"] == "1024x1024"


async def test_context_window_and_token_count_fallback(monkeypatch):
    class FakeEncoding:
        def encode(self, text):
            return text.split()

    def unknown_model(name):
        raise KeyError(name)

    monkeypatch.setattr(openai_text.tiktoken, "encoding_for_model", unknown_model)
    monkeypatch.setattr(openai_text.tiktoken, "get_encoding", lambda name: FakeEncoding())
    openai_text.get_tiktoken_encoding.cache_clear()
    try:
        model = OpenAITextGenerationModel().with_settings(model="my-fine-tune")
        assert model.count_prompt_tokens("three small words") == 3
        assert model.context_window_size is None
        assert OpenAITextGenerationModel().context_window_size == 4097
    finally:
        openai_text.get_tiktoken_encoding.cache_clear()

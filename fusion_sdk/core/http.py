# fusion_sdk/core/http.py
# SPDX-License-Identifier: Apache-2.0
"""
HTTP call executor.

Performs exactly one request/response exchange per call; retries and
throttling are layered on top by the model call pipeline. Provider
adapters plug in:

- a request (`ApiRequest`) built from the merged call settings,
- a success handler turning a 2xx `httpx.Response` into a typed value,
- a failure handler turning a non-2xx response into an `HttpStatusError`.

Error mapping
-------------
- httpx.TransportError (connect/read/write errors, timeouts) -> TransportError
- non-2xx status                                            -> failure handler result
- cancellation signal fired while in flight                 -> Cancelled
- success handler decode failure                            -> ValidationError
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional, Set, Tuple, Type, TypeVar

import httpx
import pydantic

from fusion_sdk.core.cancellation import CancellationSignal, check_cancelled, guarded
from fusion_sdk.core.errors import HttpStatusError, ModelCallError, TransportError, ValidationError

LOG = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=pydantic.BaseModel)

SuccessHandler = Callable[[httpx.Response], T]
FailureHandler = Callable[[httpx.Response], ModelCallError]


@dataclass(frozen=True)
class MultipartForm:
    """
    multipart/form-data body.

    `files` maps a field name to `(filename, content, content_type)`.
    """

    fields: Mapping[str, Any] = field(default_factory=dict)
    files: Mapping[str, Tuple[str, bytes, str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ApiRequest:
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    json_body: Optional[Mapping[str, Any]] = None
    form: Optional[MultipartForm] = None
    method: str = "POST"


def _drop_none(body: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if v is not None}


def _build_request(client: httpx.AsyncClient, request: ApiRequest) -> httpx.Request:
    kwargs: Dict[str, Any] = {"headers": dict(request.headers)}
    if request.form is not None:
        kwargs["data"] = {k: str(v) for k, v in request.form.fields.items() if v is not None}
        kwargs["files"] = dict(request.form.files)
    elif request.json_body is not None:
        kwargs["json"] = _drop_none(request.json_body)
    return client.build_request(request.method, request.url, **kwargs)


def _transport_error(exc: httpx.TransportError, url: str) -> TransportError:
    return TransportError(
        f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__,
        details={"url": url},
    )


_ORPHANED_CLOSES: Set["asyncio.Task[None]"] = set()


def _close_orphaned(response: httpx.Response) -> None:
    # The response arrived after its caller went away; release the connection.
    closing = asyncio.ensure_future(response.aclose())
    _ORPHANED_CLOSES.add(closing)
    closing.add_done_callback(_ORPHANED_CLOSES.discard)


async def _send(
    client: httpx.AsyncClient,
    request: ApiRequest,
    signal: Optional[CancellationSignal],
    *,
    stream: bool,
) -> httpx.Response:
    http_request = _build_request(client, request)
    LOG.debug("%s %s (stream=%s)", request.method, request.url, stream)
    try:
        return await guarded(
            signal, client.send(http_request, stream=stream), on_orphan=_close_orphaned
        )
    except httpx.TransportError as exc:
        raise _transport_error(exc, request.url) from exc


async def _read_body(
    response: httpx.Response, signal: Optional[CancellationSignal], url: str
) -> None:
    try:
        await guarded(signal, response.aread())
    except httpx.TransportError as exc:
        raise _transport_error(exc, url) from exc


async def call_api(
    request: ApiRequest,
    *,
    success_handler: SuccessHandler[T],
    failure_handler: FailureHandler,
    signal: Optional[CancellationSignal] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 60.0,
) -> T:
    """
    Send `request` and decode the response.

    When `client` is None a short-lived `httpx.AsyncClient` is created for
    this exchange and closed afterwards.
    """
    check_cancelled(signal)
    async with AsyncExitStack() as stack:
        if client is None:
            client = await stack.enter_async_context(httpx.AsyncClient(timeout=timeout_s))
        response = await _send(client, request, signal, stream=False)
        if not response.is_success:
            raise failure_handler(response)
        return success_handler(response)


class ResponseLines:
    """
    Async iterator over the text lines of a streamed response body.

    Owns the underlying response (and the client, when the SDK created
    it); both are released by `aclose()` or when iteration ends.
    """

    def __init__(self, response: httpx.Response, stack: AsyncExitStack, url: str) -> None:
        self.response = response
        self._stack = stack
        self._url = url
        self._closed = False

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            async for line in self.response.aiter_lines():
                yield line
        except httpx.TransportError as exc:
            raise _transport_error(exc, self._url) from exc
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()


async def open_stream(
    request: ApiRequest,
    *,
    failure_handler: FailureHandler,
    signal: Optional[CancellationSignal] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 60.0,
) -> ResponseLines:
    """
    Open a streamed response.

    The status is checked before any line is produced: a non-2xx response
    is read in full, closed, and surfaced through `failure_handler`.
    """
    check_cancelled(signal)
    stack = AsyncExitStack()
    try:
        if client is None:
            client = await stack.enter_async_context(httpx.AsyncClient(timeout=timeout_s))
        response = await _send(client, request, signal, stream=True)
        stack.push_async_callback(response.aclose)
        if not response.is_success:
            await _read_body(response, signal, request.url)
            raise failure_handler(response)
    except BaseException:
        await stack.aclose()
        raise
    return ResponseLines(response, stack, request.url)


# =============================================================================
# Response handlers
# =============================================================================

def json_response_handler(model: Type[M]) -> Callable[[httpx.Response], M]:
    """Decode a JSON body into the given pydantic model."""

    def handle(response: httpx.Response) -> M:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidationError(
                "response body is not valid JSON",
                value=response.text,
                cause=exc,
            ) from exc
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"unexpected response shape for {model.__name__}",
                value=payload,
                cause=exc,
                details={"errors": exc.error_count()},
            ) from exc

    return handle


def text_response_handler() -> Callable[[httpx.Response], str]:
    def handle(response: httpx.Response) -> str:
        return response.text

    return handle


def parse_retry_after(response: httpx.Response) -> Optional[int]:
    """`Retry-After` header (seconds) as milliseconds, when numeric."""
    raw = response.headers.get("retry-after")
    if not raw:
        return None
    try:
        return max(0, int(float(raw) * 1000))
    except ValueError:
        return None


def read_error_payload(response: httpx.Response) -> Any:
    """Best-effort decoded error body: JSON when possible, text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


def error_message(payload: Any, default: str) -> str:
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        if payload.get("message"):
            return str(payload["message"])
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def response_url(response: httpx.Response) -> Optional[str]:
    try:
        return str(response.request.url)
    except RuntimeError:
        return None


def default_failure_handler(provider: str) -> FailureHandler:
    """Failure handler with the default retryable mapping (408, 429, 5xx)."""

    def handle(response: httpx.Response) -> ModelCallError:
        payload = read_error_payload(response)
        return HttpStatusError(
            error_message(payload, f"HTTP {response.status_code}"),
            status_code=response.status_code,
            provider=provider,
            url=response_url(response),
            data=payload,
            retry_after_ms=parse_retry_after(response),
        )

    return handle


__all__ = [
    "ApiRequest",
    "MultipartForm",
    "ResponseLines",
    "call_api",
    "open_stream",
    "json_response_handler",
    "text_response_handler",
    "default_failure_handler",
    "parse_retry_after",
    "read_error_payload",
    "error_message",
    "response_url",
]

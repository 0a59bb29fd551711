# fusion_sdk/core/streaming.py
# SPDX-License-Identifier: Apache-2.0
"""
Streaming helpers: response framing and text delta aggregation.

Framing turns the raw lines of a streamed HTTP body into provider chunks:

- `parse_sse_data`   Server-Sent Events; yields each event's `data` payload
- `parse_sse_json`   SSE payloads decoded as JSON, optionally stopping at
                     a terminal marker such as OpenAI's `[DONE]`
- `parse_json_lines` newline-delimited JSON

`aggregate_text_deltas` then maps chunks to `TextDeltaEvent`s carrying
both the delta and the text accumulated so far. Every layer closes the
layer below it when it finishes, fails or is closed early, so abandoning
a stream always releases the HTTP response.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, List, Optional

from fusion_sdk.core.cancellation import CancellationSignal, check_cancelled, guarded
from fusion_sdk.core.errors import ValidationError

LOG = logging.getLogger(__name__)

_END = object()


@dataclass(frozen=True)
class TextDeltaEvent:
    delta: str
    cumulative_text: str


async def _aclose(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


def _decode_json(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"invalid JSON in stream chunk: {exc}",
            value=payload,
            cause=exc,
        ) from exc


async def parse_sse_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Yield the `data` payload of each Server-Sent Event.

    Multi-line data is joined with newlines; `event:`, `id:`, `retry:` and
    comment lines are ignored; unknown lines are treated as data.
    """
    data_lines: List[str] = []
    try:
        async for raw_line in lines:
            line = raw_line.rstrip("\r\n")

            if not line:
                if data_lines:
                    yield "\n".join(data_lines)
                    data_lines = []
                continue

            if line.startswith("data:"):
                value = line[5:]
                data_lines.append(value[1:] if value.startswith(" ") else value)
            elif line.startswith((":", "event:", "id:", "retry:")):
                continue
            else:
                data_lines.append(line)

        if data_lines:
            yield "\n".join(data_lines)
    finally:
        await _aclose(lines)


async def parse_sse_json(
    lines: AsyncIterable[str], *, done_marker: Optional[str] = None
) -> AsyncIterator[Any]:
    """SSE payloads decoded as JSON; iteration stops at `done_marker`."""
    events = parse_sse_data(lines)
    try:
        async for payload in events:
            if done_marker is not None and payload.strip() == done_marker:
                break
            if not payload.strip():
                continue
            yield _decode_json(payload)
    finally:
        await events.aclose()


async def parse_json_lines(lines: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Newline-delimited JSON; blank lines are skipped."""
    try:
        async for line in lines:
            if not line.strip():
                continue
            yield _decode_json(line)
    finally:
        await _aclose(lines)


async def _next_chunk(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def aggregate_text_deltas(
    chunks: AsyncIterable[Any],
    extract_delta: Callable[[Any], Optional[str]],
    *,
    signal: Optional[CancellationSignal] = None,
) -> AsyncIterator[TextDeltaEvent]:
    """
    Map provider chunks to ordered `TextDeltaEvent`s.

    `extract_delta` returns the text carried by a chunk, or None/"" for
    chunks without text (role headers, keep-alives, usage records).
    Errors raised mid-stream propagate after the deltas already yielded.
    The chunk source is always closed.
    """
    iterator = chunks.__aiter__()
    cumulative = ""
    try:
        while True:
            check_cancelled(signal)
            chunk = await guarded(signal, _next_chunk(iterator))
            if chunk is _END:
                break
            delta = extract_delta(chunk)
            if not delta:
                continue
            cumulative += delta
            yield TextDeltaEvent(delta=delta, cumulative_text=cumulative)
    finally:
        await _aclose(iterator)


class TextDeltaStream:
    """
    Single-consumption async iterator of `TextDeltaEvent`s.

    `text` is the text accumulated so far (the full text once `completed`).
    Closing the stream early (`aclose()`, leaving `async with`, or breaking
    out of the loop and closing) releases the underlying response.
    """

    def __init__(self, events: AsyncIterator[TextDeltaEvent]) -> None:
        self._events = events
        self._iterator: Optional[AsyncIterator[TextDeltaEvent]] = None
        self._consumed = False
        self._completed = False
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    @property
    def completed(self) -> bool:
        return self._completed

    def __aiter__(self) -> AsyncIterator[TextDeltaEvent]:
        if self._consumed:
            raise RuntimeError("text stream can only be consumed once")
        self._consumed = True
        self._iterator = self._iterate()
        return self._iterator

    async def _iterate(self) -> AsyncIterator[TextDeltaEvent]:
        try:
            async for event in self._events:
                self._text = event.cumulative_text
                yield event
            self._completed = True
        finally:
            await _aclose(self._events)

    async def collect(self) -> str:
        """Drain the stream and return the full text."""
        async for _ in self:
            pass
        return self._text

    async def aclose(self) -> None:
        if self._iterator is not None:
            await _aclose(self._iterator)
        else:
            self._consumed = True
            await _aclose(self._events)

    async def __aenter__(self) -> "TextDeltaStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "TextDeltaEvent",
    "TextDeltaStream",
    "parse_sse_data",
    "parse_sse_json",
    "parse_json_lines",
    "aggregate_text_deltas",
]

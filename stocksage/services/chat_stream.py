"""Incremental decoding of streamed chat completions.

The gateway streams ``text/event-stream`` bodies where every ``data:`` line holds
one chat-completion chunk (``{"choices": [{"delta": {"content": "..."}}]}``) and
the stream ends with ``data: [DONE]``. Chunk boundaries from the network do not
line up with lines or UTF-8 code points, so decoding keeps a small amount of
state between chunks.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any, Final

logger = logging.getLogger(__name__)

DATA_PREFIX: Final = "data: "
DONE_SENTINEL: Final = "[DONE]"
DEFAULT_MAX_DEFERRED_CHARS: Final = 65536
FIELD_PREFIXES: Final = ("event:", "id:", "retry:")

_DEFERRED = object()


class StreamTransportError(RuntimeError):
    """Raised when the byte source fails before end-of-stream or the terminator."""


@dataclass(frozen=True)
class StreamFrame:
    delta: str | None = None
    done: bool = False


def parse_stream_frame(payload: str) -> StreamFrame:
    """Parse one ``data:`` payload.

    Raises ``ValueError`` (``json.JSONDecodeError``) when the payload is not valid JSON.
    Valid JSON without a string ``choices[0].delta.content`` yields a frame without delta.
    """

    if payload == DONE_SENTINEL:
        return StreamFrame(done=True)
    return StreamFrame(delta=_extract_delta(json.loads(payload)))


def _extract_delta(parsed: Any) -> str | None:
    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class ChatStreamDecoder:
    """Push-style state machine turning SSE byte chunks into text fragments.

    ``feed`` and ``finish`` return the non-empty fragments produced by the bytes seen so far.
    Once the terminator has been observed (``done``) further input is ignored.

    A ``data:`` line whose payload is not valid JSON is deferred rather than dropped: line
    extraction pauses until the next chunk arrives, and the payload is then retried joined
    with the following line. A deferred payload is dropped when a standalone event supersedes
    it, when it grows past ``max_deferred_chars`` or when the stream ends unresolved.
    """

    def __init__(self, *, max_deferred_chars: int = DEFAULT_MAX_DEFERRED_CHARS) -> None:
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._max_deferred_chars = max_deferred_chars
        self._buffer = ""
        self._deferred: str | None = None
        self._fragments: list[str] = []
        self.done = False

    @property
    def accumulated(self) -> str:
        return "".join(self._fragments)

    @property
    def has_deferred(self) -> bool:
        return self._deferred is not None

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        self._buffer += self._text_decoder.decode(chunk)
        return self._drain(final=False)

    def finish(self) -> list[str]:
        """Flush state at end-of-stream; a trailing line without newline is discarded."""

        if self.done:
            return []
        self._buffer += self._text_decoder.decode(b"", final=True)
        fragments = self._drain(final=True)
        if self._deferred is not None:
            logger.debug("dropping unresolved stream event at end of stream", extra={"chars": len(self._deferred)})
            self._deferred = None
        self._buffer = ""
        return fragments

    def _drain(self, *, final: bool) -> list[str]:
        fragments: list[str] = []
        while not self.done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1 :]
            if line.endswith("\r"):
                line = line[:-1]

            outcome = self._resume_deferred(line) if self._deferred is not None else self._process_line(line)
            if outcome is _DEFERRED:
                if final:
                    continue
                break
            if outcome:
                fragments.append(outcome)
                self._fragments.append(outcome)
        return fragments

    def _process_line(self, line: str) -> object:
        if not line.strip() or line.startswith(":"):
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return None

        try:
            frame = parse_stream_frame(payload)
        except ValueError:
            return self._defer(payload)
        return frame.delta or None

    def _resume_deferred(self, line: str) -> object:
        deferred = self._deferred or ""
        if not line.strip() or line.startswith(":"):
            return None
        # Other SSE fields belong to the event, not to the payload being completed.
        if line.startswith(FIELD_PREFIXES):
            return None

        is_event = line.startswith(DATA_PREFIX)
        if is_event:
            candidate = f"{deferred}\n{line[len(DATA_PREFIX):].strip()}"
        else:
            candidate = deferred + line

        try:
            frame = parse_stream_frame(candidate)
        except ValueError:
            frame = None

        if frame is not None:
            self._deferred = None
            return frame.delta or None

        if is_event:
            # A new event started; the deferred payload can no longer be completed.
            logger.debug("dropping unresolved stream event", extra={"chars": len(deferred)})
            self._deferred = None
            return self._process_line(line)

        return self._defer(candidate)

    def _defer(self, payload: str) -> object:
        if len(payload) > self._max_deferred_chars:
            logger.warning(
                "discarding malformed stream event over deferral limit",
                extra={"chars": len(payload), "limit": self._max_deferred_chars},
            )
            self._deferred = None
            return None
        self._deferred = payload
        return _DEFERRED


class ChatStream:
    """Async iterator of assistant text fragments that owns its byte source from creation.

    The source is read only as fragments are consumed and it is closed exactly once, whether
    decoding completes, hits the terminator, fails, or the consumer calls ``aclose`` (before or
    after the first fragment). Read failures surface as ``StreamTransportError``.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        *,
        max_deferred_chars: int = DEFAULT_MAX_DEFERRED_CHARS,
    ) -> None:
        self._source = source
        self._chunks: AsyncIterator[bytes] | None = None
        self._released = False
        self._decoder = ChatStreamDecoder(max_deferred_chars=max_deferred_chars)
        self._fragments = self._decode()

    @property
    def accumulated(self) -> str:
        return self._decoder.accumulated

    def __aiter__(self) -> ChatStream:
        return self

    async def __anext__(self) -> str:
        return await anext(self._fragments)

    async def aclose(self) -> None:
        try:
            await self._fragments.aclose()
        finally:
            # An unstarted generator never runs its own cleanup.
            await self._release()

    async def _decode(self) -> AsyncIterator[str]:
        decoder = self._decoder
        try:
            self._chunks = aiter(self._source)
            while not decoder.done:
                try:
                    chunk = await anext(self._chunks)
                except StopAsyncIteration:
                    for fragment in decoder.finish():
                        yield fragment
                    return
                except Exception as exc:
                    raise StreamTransportError(f"chat stream read failed: {exc}") from exc

                for fragment in decoder.feed(chunk):
                    yield fragment
        finally:
            await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        chunks, source = self._chunks, self._source
        if chunks is not None and chunks is not source:
            close_iterator = getattr(chunks, "aclose", None)
            if close_iterator is not None:
                await close_iterator()
        close_source = getattr(source, "aclose", None)
        if close_source is not None:
            await close_source()


def decode_chat_stream(
    source: AsyncIterable[bytes],
    *,
    max_deferred_chars: int = DEFAULT_MAX_DEFERRED_CHARS,
) -> ChatStream:
    """Take ownership of an SSE byte source and return the stream of its text fragments."""

    return ChatStream(source, max_deferred_chars=max_deferred_chars)

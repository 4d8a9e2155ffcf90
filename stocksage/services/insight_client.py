from __future__ import annotations

from collections.abc import AsyncIterator
import logging
from typing import Any

import httpx

from stocksage.services.chat_stream import DEFAULT_MAX_DEFERRED_CHARS, StreamTransportError, decode_chat_stream
from stocksage.services.conversation import ConversationStore

logger = logging.getLogger(__name__)

ASSISTANT_ERROR_FALLBACK = "I apologize, but I encountered an error. Please try again."


class InsightClientError(RuntimeError):
    """Base class for insight failures that the caller reports to the user."""

    user_message = "Failed to get AI response"


class RateLimitedError(InsightClientError):
    user_message = "Rate limit exceeded. Please try again later."


class QuotaExhaustedError(InsightClientError):
    user_message = "AI credits exhausted. Please upgrade your plan."


class InsightRequestError(InsightClientError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class _ResponseByteSource:
    """Byte source over a streamed httpx response; closing it closes the response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def aclose(self) -> None:
        await self._response.aclose()


class InsightClient:
    """Caller for the stock insight endpoint that keeps a conversation in sync with the stream."""

    def __init__(
        self,
        endpoint_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 120.0,
        max_deferred_chars: int = DEFAULT_MAX_DEFERRED_CHARS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._api_key = api_key
        self._max_deferred_chars = max_deferred_chars
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def stream_reply(
        self,
        conversation: ConversationStore,
        question: str,
        *,
        ticker: str | None = None,
    ) -> AsyncIterator[str]:
        """Append ``question``, post the conversation and yield reply fragments as they arrive.

        The last conversation message tracks the accumulated reply. 429 and 402 responses raise
        ``RateLimitedError`` and ``QuotaExhaustedError`` without touching the transcript further;
        other failures leave either the partial reply or a generic apology in place.
        """

        conversation.append_user(question)
        request = self._client.build_request(
            "POST",
            self._endpoint_url,
            json=self._build_body(conversation, ticker),
            headers=self._headers(),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("insight request failed before a response", extra={"endpoint": self._endpoint_url})
            conversation.append("assistant", ASSISTANT_ERROR_FALLBACK)
            raise StreamTransportError(f"insight request failed: {exc}") from exc

        if response.status_code == 429:
            await response.aclose()
            raise RateLimitedError("insight endpoint rate limited the request")
        if response.status_code == 402:
            await response.aclose()
            raise QuotaExhaustedError("insight endpoint reported exhausted AI credits")
        if not response.is_success:
            await response.aclose()
            conversation.append("assistant", ASSISTANT_ERROR_FALLBACK)
            raise InsightRequestError(response.status_code, f"insight endpoint returned HTTP {response.status_code}")

        conversation.begin_assistant()
        accumulated = ""
        fragments = decode_chat_stream(_ResponseByteSource(response), max_deferred_chars=self._max_deferred_chars)
        try:
            async for fragment in fragments:
                accumulated += fragment
                conversation.update_last(accumulated)
                yield fragment
        except StreamTransportError:
            logger.warning("insight stream interrupted", extra={"received_chars": len(accumulated)})
            if not accumulated:
                conversation.update_last(ASSISTANT_ERROR_FALLBACK)
            raise
        finally:
            await fragments.aclose()

    async def ask(self, conversation: ConversationStore, question: str, *, ticker: str | None = None) -> str:
        """Stream a full reply and return its text."""

        chunks = [chunk async for chunk in self.stream_reply(conversation, question, ticker=ticker)]
        return "".join(chunks)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    @staticmethod
    def _build_body(conversation: ConversationStore, ticker: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {"messages": conversation.as_payload()}
        if ticker:
            body["ticker"] = ticker
        return body

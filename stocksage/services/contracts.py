from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from stocksage.api.schemas.insight import InsightMessage


class GatewayClientProtocol(Protocol):
    """Streaming chat-completion access to the hosted language-model gateway."""

    async def open_chat_stream(self, payload: dict[str, Any]) -> httpx.Response:
        """Send a ``stream: true`` completion request and return the open, successful response.

        Raises ``GatewayClientError`` for missing configuration, transport failures and
        non-2xx upstream statuses. The caller owns the returned response and must close it.
        """

    async def aclose(self) -> None:
        """Release pooled HTTP connections during application shutdown."""


class InsightServiceProtocol(Protocol):
    """Use-case contract for the stock insight endpoint."""

    def build_system_prompt(self, ticker: str | None = None) -> str:
        """Return the educational system prompt, focused on ``ticker`` when given."""

    async def open_stream(self, messages: Sequence[InsightMessage], ticker: str | None = None) -> httpx.Response:
        """Forward the conversation to the gateway and return its open event-stream response."""

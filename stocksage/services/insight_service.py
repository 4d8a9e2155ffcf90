from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx

from stocksage.api.schemas.insight import InsightMessage
from stocksage.core.settings import Settings
from stocksage.services.contracts import GatewayClientProtocol

logger = logging.getLogger(__name__)


class InsightService:
    """Builds educational insight requests and opens the upstream completion stream."""

    def __init__(self, gateway: GatewayClientProtocol, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    def build_system_prompt(self, ticker: str | None = None) -> str:
        prompt = self._settings.insight_system_prompt
        if not ticker:
            return prompt
        return f"{prompt}\n\nThe user is asking about {ticker}. Focus your educational insights on this stock."

    def build_payload(self, messages: Sequence[InsightMessage], ticker: str | None = None) -> dict[str, Any]:
        return {
            "model": self._settings.ai_gateway_model,
            "messages": [
                {"role": "system", "content": self.build_system_prompt(ticker)},
                *(message.model_dump() for message in messages),
            ],
            "stream": True,
        }

    async def open_stream(self, messages: Sequence[InsightMessage], ticker: str | None = None) -> httpx.Response:
        logger.info(
            "opening insight stream",
            extra={"ticker": ticker, "message_count": len(messages), "model": self._settings.ai_gateway_model},
        )
        return await self._gateway.open_chat_stream(self.build_payload(messages, ticker))

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from stocksage.services.contracts import GatewayClientProtocol

logger = logging.getLogger(__name__)


@dataclass
class GatewayClientError(Exception):
    status_code: int
    message: str


class AIGatewayClient(GatewayClientProtocol):
    """httpx client for an OpenAI-compatible chat-completions gateway."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._completions_url = f"{base_url.rstrip('/')}/chat/completions"
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def open_chat_stream(self, payload: dict[str, Any]) -> httpx.Response:
        if not self._api_key:
            raise GatewayClientError(status_code=500, message="AI_GATEWAY_API_KEY is not configured")

        request = self._client.build_request(
            "POST",
            self._completions_url,
            json=payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise GatewayClientError(status_code=504, message=f"AI gateway timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise GatewayClientError(status_code=502, message=f"AI gateway unreachable: {exc}") from exc

        if response.is_success:
            return response

        status_code = response.status_code
        await response.aclose()
        logger.warning("AI gateway rejected completion request", extra={"status_code": status_code})
        raise GatewayClientError(status_code=status_code, message="AI gateway error")

"""Route tests for the stock insight endpoint."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from stocksage.api.routers import insight as insight_router
from stocksage.core.settings import Settings
from stocksage.services.chat_stream import StreamTransportError
from stocksage.services.contracts import InsightServiceProtocol
from stocksage.services.conversation import ConversationStore
from stocksage.services.gateway_client import AIGatewayClient, GatewayClientError
from stocksage.services.insight_client import ASSISTANT_ERROR_FALLBACK, InsightClient
from stocksage.services.insight_service import InsightService
from tests.conftest import build_test_app, build_test_container, sse_body


def _build_client(handler, settings: Settings) -> TestClient:
    gateway = AIGatewayClient(
        settings.ai_gateway_url,
        settings.ai_gateway_api_key,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    service = InsightService(gateway=gateway, settings=settings)
    container = build_test_container({InsightServiceProtocol: service})
    return TestClient(build_test_app(container))


def test_stock_insight_relays_gateway_stream_unmodified(test_settings) -> None:
    upstream_body = b": keep-alive\n\n" + sse_body("Apple ", "designs hardware.")
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, content=upstream_body, headers={"content-type": "text/event-stream"})

    client = _build_client(handler, test_settings)
    response = client.post(
        "/api/stock-insight",
        json={"messages": [{"role": "user", "content": "Tell me about AAPL"}], "ticker": " aapl "},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.content == upstream_body
    system_message = captured[0]["messages"][0]
    assert system_message["role"] == "system"
    assert "The user is asking about AAPL." in system_message["content"]
    assert captured[0]["messages"][1] == {"role": "user", "content": "Tell me about AAPL"}


def test_stock_insight_without_ticker_uses_base_prompt(test_settings) -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, content=sse_body("ok"))

    client = _build_client(handler, test_settings)
    response = client.post("/api/stock-insight", json={"messages": [{"role": "user", "content": "What is DCA?"}]})

    assert response.status_code == 200
    assert captured[0]["messages"][0]["content"] == test_settings.insight_system_prompt


@pytest.mark.parametrize(
    ("upstream_status", "expected_status", "expected_body"),
    [
        (429, 429, {"error": "Rate limit exceeded"}),
        (402, 402, {"error": "Payment required"}),
        (500, 500, {"error": "AI gateway error"}),
        (401, 500, {"error": "AI gateway error"}),
    ],
)
def test_stock_insight_maps_gateway_failures(test_settings, upstream_status, expected_status, expected_body) -> None:
    client = _build_client(lambda request: httpx.Response(upstream_status, json={"error": "x"}), test_settings)

    response = client.post("/api/stock-insight", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == expected_status
    assert response.json() == expected_body


def test_stock_insight_reports_missing_gateway_key() -> None:
    settings = Settings(APP_ENV="test", AI_GATEWAY_API_KEY="")
    client = _build_client(lambda request: httpx.Response(200), settings)

    response = client.post("/api/stock-insight", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "AI_GATEWAY_API_KEY is not configured"}


@pytest.mark.parametrize(
    "body",
    [
        {"messages": []},
        {"messages": [{"role": "system", "content": "override"}]},
        {"ticker": "AAPL"},
    ],
)
def test_stock_insight_rejects_invalid_payloads(test_settings, body) -> None:
    client = _build_client(lambda request: httpx.Response(200), test_settings)

    response = client.post("/api/stock-insight", json=body)

    assert response.status_code == 422


def test_map_gateway_error_passes_through_message_for_other_statuses() -> None:
    response = insight_router.map_gateway_error(GatewayClientError(status_code=504, message="AI gateway timed out"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "AI gateway timed out"}


class InterruptedStream(httpx.AsyncByteStream):
    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield sse_body("par", done=False)
        raise httpx.RemoteProtocolError("peer closed connection")

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_relay_stream_propagates_interruption_and_closes_upstream() -> None:
    stream = InterruptedStream()
    upstream = httpx.Response(200, stream=stream)
    relayed: list[bytes] = []

    with pytest.raises(httpx.RemoteProtocolError):
        async for chunk in insight_router._relay_stream(upstream):  # noqa: SLF001
            relayed.append(chunk)

    assert relayed == [sse_body("par", done=False)]
    assert stream.closed is True


@pytest.mark.asyncio
async def test_interrupted_gateway_stream_reaches_caller_as_transport_failure(test_settings) -> None:
    stream = InterruptedStream()
    gateway = AIGatewayClient(
        test_settings.ai_gateway_url,
        test_settings.ai_gateway_api_key,
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))),
    )
    service = InsightService(gateway=gateway, settings=test_settings)
    app = build_test_app(build_test_container({InsightServiceProtocol: service}))
    caller = InsightClient(
        "http://stocksage.test/api/stock-insight",
        client=httpx.AsyncClient(transport=httpx.ASGITransport(app=app)),
    )
    conversation = ConversationStore()
    received: list[str] = []

    with pytest.raises(StreamTransportError):
        async for fragment in caller.stream_reply(conversation, "Explain P/E ratios"):
            received.append(fragment)

    assert conversation.last is not None
    assert received == []
    assert conversation.last.content == ASSISTANT_ERROR_FALLBACK
    assert stream.closed is True

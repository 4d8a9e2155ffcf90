from collections.abc import AsyncIterator
import logging

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from stocksage.api.schemas.insight import InsightErrorResponse, InsightRequest
from stocksage.dependency_injection import get_container
from stocksage.services.contracts import InsightServiceProtocol
from stocksage.services.gateway_client import GatewayClientError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["insight"])


def map_gateway_error(exc: GatewayClientError) -> JSONResponse:
    if exc.status_code == 429:
        return JSONResponse(status_code=429, content={"error": "Rate limit exceeded"})
    if exc.status_code == 402:
        return JSONResponse(status_code=402, content={"error": "Payment required"})
    return JSONResponse(status_code=500, content={"error": exc.message})


async def _relay_stream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    except httpx.HTTPError:
        # Headers are already sent; the server must abort the body, not end it cleanly.
        logger.exception("AI gateway stream interrupted")
        raise
    finally:
        await upstream.aclose()


@router.post(
    "/stock-insight",
    summary="Stream an educational stock insight",
    description="Forwards the conversation, with an educational system prompt, to the AI gateway and relays its event stream unmodified.",
    responses={
        402: {"model": InsightErrorResponse, "description": "AI credits exhausted"},
        429: {"model": InsightErrorResponse, "description": "Upstream rate limit exceeded"},
        500: {"model": InsightErrorResponse, "description": "Gateway misconfiguration or failure"},
    },
)
async def stock_insight(payload: InsightRequest, request: Request) -> Response:
    insight_service = get_container(request).resolve(InsightServiceProtocol)

    try:
        upstream = await insight_service.open_stream(payload.messages, payload.ticker)
    except GatewayClientError as exc:
        logger.error(
            "stock insight request failed",
            extra={"status_code": exc.status_code, "detail": exc.message, "ticker": payload.ticker},
        )
        return map_gateway_error(exc)

    return StreamingResponse(
        _relay_stream(upstream),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )

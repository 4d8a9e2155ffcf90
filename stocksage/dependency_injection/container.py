from __future__ import annotations

import punq
from fastapi import Request

from stocksage.core.settings import Settings
from stocksage.services.contracts import GatewayClientProtocol, InsightServiceProtocol
from stocksage.services.gateway_client import AIGatewayClient
from stocksage.services.insight_service import InsightService


def build_container(settings: Settings) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)

    container.register(
        GatewayClientProtocol,
        factory=lambda: AIGatewayClient(
            base_url=settings.ai_gateway_url,
            api_key=settings.ai_gateway_api_key,
            timeout_seconds=settings.ai_gateway_timeout_seconds,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(InsightServiceProtocol, factory=InsightService, scope=punq.Scope.singleton)

    return container


def get_container(request: Request) -> punq.Container:
    return request.app.state.container

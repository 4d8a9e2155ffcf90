from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stocksage.api.router import api_router
from stocksage.api.routers.health import router as health_router
from stocksage.core.logging import configure_logging
from stocksage.core.settings import get_settings
from stocksage.dependency_injection import build_container
from stocksage.services.contracts import GatewayClientProtocol

settings = get_settings()
configure_logging(settings.effective_log_level)
logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("starting stock insight service", extra={"app_env": settings.app_env})

    container = build_container(settings)
    app.state.settings = settings
    app.state.container = container
    if not settings.ai_gateway_api_key:
        logger.warning("AI_GATEWAY_API_KEY is not configured; insight requests will fail")

    try:
        yield
    finally:
        await container.resolve(GatewayClientProtocol).aclose()
        logger.info("stock insight service shutdown complete")


app = FastAPI(
    title="StockSage Insight Service",
    version="0.1.0",
    docs_url="/docs" if settings.enable_swagger else None,
    redoc_url="/redoc" if settings.enable_swagger else None,
    openapi_url="/openapi.json" if settings.enable_swagger else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=CORS_ALLOW_HEADERS,
)
app.include_router(health_router)
app.include_router(api_router, prefix="/api")

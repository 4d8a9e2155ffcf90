from fastapi import APIRouter

from stocksage import __version__

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Liveness probe for the insight service")
def healthz() -> dict[str, str]:
    return {"status": "ok", "service": "stocksage-insights", "version": __version__}

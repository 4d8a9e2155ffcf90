from fastapi import APIRouter

from stocksage.api.routers.insight import router as insight_router

api_router = APIRouter()
api_router.include_router(insight_router)

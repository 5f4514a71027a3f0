from fastapi import APIRouter

from tradeintel.api.v1 import health, hs_codes, pipeline

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(pipeline.router, prefix="/v1/pipeline", tags=["pipeline"])
api_router.include_router(hs_codes.router, prefix="/v1/hs-codes", tags=["hs-codes"])

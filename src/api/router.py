from fastapi import APIRouter

from src.api.endpoints import analysis, health

router = APIRouter()
router.include_router(health.router, tags=["health"])
router.include_router(analysis.router, tags=["analysis"])

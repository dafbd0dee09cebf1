"""Route aggregators for the web application."""

from fastapi.routing import APIRouter

from src.web.routes.health import router as health_router
from src.web.routes.sync import router as sync_router

__all__ = ["router"]

router = APIRouter()

router.include_router(health_router, tags=["health"])
router.include_router(sync_router, prefix="/sync", tags=["sync"])

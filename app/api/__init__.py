"""API routers for the NearSky backend."""

from fastapi import APIRouter

from .debug import router as debug_router
from .health import router as health_router
from .images import router as images_router
from .stream import router as stream_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(stream_router)
api_router.include_router(images_router)
api_router.include_router(debug_router)

__all__ = ["api_router"]

from fastapi import APIRouter

from .notebooks import router as notebooks_router
from .websocket import router as websocket_router

api_router = APIRouter()

api_router.include_router(notebooks_router, prefix="/notebooks", tags=["notebooks"])
api_router.include_router(websocket_router, tags=["websocket"])

__all__ = ["api_router"]

"""FastAPI API endpoints.

`router` is mounted under /api: health, provider selection, connection
check, character chat and memories. `gateway_router` is mounted at the root
and serves the raw /chat and /api/chat proxy endpoints.
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .gateway import router as gateway_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(characters_router)

__all__ = ["router", "gateway_router"]

"""API route modules.

- streaming.py: grammar and translation NDJSON streams
- health.py: model host reachability
- config.py: runtime model host configuration
"""

from fastapi import APIRouter

from .config import router as config_router
from .health import router as health_router
from .streaming import router as streaming_router

router = APIRouter()
router.include_router(streaming_router)
router.include_router(health_router)
router.include_router(config_router)

__all__ = [
    "config_router",
    "health_router",
    "router",
    "streaming_router",
]

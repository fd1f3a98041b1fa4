"""
Routers API pour SegmentIQ.

Ce module regroupe les sous-routers et expose un router principal
a inclure dans l'application FastAPI.
"""
from fastapi import APIRouter

from segmentiq.api.routers.segment_router import router as segment_router
from segmentiq.api.routers._shared import limiter

router = APIRouter()

router.include_router(segment_router)

__all__ = ["router", "limiter"]

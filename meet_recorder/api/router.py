"""
API router aggregation.
"""

from fastapi import APIRouter
from meet_recorder.api.endpoints import recordings

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(recordings.router, tags=["Recordings"])

__all__ = ["api_router"]

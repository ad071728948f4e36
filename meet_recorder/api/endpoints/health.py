"""
Health check endpoint.
"""

import time
from datetime import datetime
from typing import Dict, Any

from fastapi import APIRouter, Request

from meet_recorder.api.schemas.recording import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse, tags=["Health"])
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status with active recording count, uptime and version
    """
    state = request.app.state
    return {
        "status": "ok",
        "timestamp": datetime.now(),
        "active_recordings": state.registry.active_count,
        "uptime_seconds": round(time.monotonic() - state.started_at, 1),
        "version": state.settings.version,
    }

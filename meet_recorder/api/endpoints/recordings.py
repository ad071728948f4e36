"""
Recording control endpoints (record, status, download, stop).
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, status
from fastapi.responses import FileResponse, JSONResponse

from meet_recorder.api.schemas.recording import (
    ErrorResponse,
    PendingDownloadResponse,
    RecordRequest,
    RecordResponse,
    SessionStatusResponse,
    StopResponse,
)
from meet_recorder.config import get_logger
from meet_recorder.core.dependencies import RecordingManagerDep
from meet_recorder.services import RecordingManager

router = APIRouter()
logger = get_logger("api.recordings")

MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "opus": "audio/ogg",
}


@router.post(
    "/record",
    response_model=RecordResponse,
    responses={400: {"model": ErrorResponse}},
    tags=["Recordings"],
)
async def start_recording(
    request: RecordRequest,
    manager: RecordingManager = RecordingManagerDep,
) -> Dict[str, Any]:
    """
    Start recording a Google Meet meeting.

    Args:
        request: Meeting URL, capture options and optional Google account
        manager: Recording manager (injected)

    Returns:
        Recording id and the URLs to poll and download it
    """
    logger.info(f"Record request: {request.meet_url}")

    return await manager.start_recording(
        meet_url=request.meet_url,
        options=request.options.model_dump(exclude_none=True) if request.options else None,
        google_auth=request.google_auth.model_dump() if request.google_auth else None,
        wait_for_start=request.wait_for_start,
    )


@router.get(
    "/status/{recording_id}",
    responses={200: {"model": SessionStatusResponse}, 404: {"model": ErrorResponse}},
    tags=["Recordings"],
)
async def get_recording_status(
    recording_id: str,
    manager: RecordingManager = RecordingManagerDep,
) -> Dict[str, Any]:
    """
    Get the full session document of a recording.
    """
    return manager.get_status(recording_id)


@router.get(
    "/download/{recording_id}",
    responses={202: {"model": PendingDownloadResponse}, 404: {"model": ErrorResponse}},
    tags=["Recordings"],
)
@router.get(
    "/download/{recording_id}/{audio_format}",
    responses={202: {"model": PendingDownloadResponse}, 404: {"model": ErrorResponse}},
    tags=["Recordings"],
)
async def download_recording(
    recording_id: str,
    audio_format: Optional[str] = None,
    manager: RecordingManager = RecordingManagerDep,
):
    """
    Download a processed recording.

    Defaults to the session's capture format. Returns 202 while the
    recording is still in progress.
    """
    path, document = manager.resolve_download(recording_id, audio_format)

    if path is None:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "message": "Recording not ready yet",
                "status": document.get("status"),
            },
        )

    fmt = path.suffix.lstrip(".")
    return FileResponse(
        path,
        media_type=MEDIA_TYPES.get(fmt, "application/octet-stream"),
        filename=f"{recording_id}.{fmt}",
    )


@router.post(
    "/stop/{recording_id}",
    response_model=StopResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Recordings"],
)
async def stop_recording(
    recording_id: str,
    manager: RecordingManager = RecordingManagerDep,
) -> Dict[str, Any]:
    """
    Stop an active recording; processing continues in its worker.
    """
    return manager.stop_recording(recording_id)

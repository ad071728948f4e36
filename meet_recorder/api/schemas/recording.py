"""
API request/response schemas for recording operations.

Field names are snake_case; the camelCase names used by older clients
(``meetUrl``, ``audioFormat``, ``quality``, ``maxDuration``, ``googleAuth``)
are accepted as aliases.
"""

from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class RecordOptions(BaseModel):
    """Capture options; unset fields fall back to the server defaults."""
    model_config = ConfigDict(populate_by_name=True)

    audio_format: Optional[str] = Field(None, alias="audioFormat", description="Master capture format")
    bitrate: Optional[str] = Field(None, alias="quality", description="Encoder bitrate, e.g. '320k'")
    max_duration: Optional[int] = Field(None, alias="maxDuration", description="Max recording length in seconds")
    output_formats: Optional[List[str]] = Field(None, alias="outputFormats", description="Formats produced after stop")


class GoogleAuth(BaseModel):
    """Google account the bot signs in with."""
    email: Optional[str] = None
    password: Optional[str] = Field(None, repr=False)


class RecordRequest(BaseModel):
    """Request to record a meeting."""
    model_config = ConfigDict(populate_by_name=True)

    meet_url: Optional[str] = Field(None, alias="meetUrl", description="Google Meet URL to record")
    options: Optional[RecordOptions] = None
    google_auth: Optional[GoogleAuth] = Field(None, alias="googleAuth")
    wait_for_start: Optional[bool] = Field(
        None, alias="waitForStart", description="Hold the response until recording has started"
    )


class RecordResponse(BaseModel):
    """Response for a record request."""
    success: bool
    recording_id: str
    status: str
    message: str
    status_url: str
    download_url: str


class StopResponse(BaseModel):
    """Response for a stop request."""
    success: bool
    recording_id: str
    message: str
    status_url: str


class SessionStatusResponse(BaseModel):
    """Session metadata document plus liveness."""
    model_config = ConfigDict(extra="allow")

    recording_id: str
    status: str
    is_active: bool
    timestamp: str
    files: Optional[Dict[str, str]] = None
    error: Optional[str] = None


class PendingDownloadResponse(BaseModel):
    """Returned while the recording is not ready."""
    message: str
    status: str


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: datetime
    active_recordings: int
    uptime_seconds: float
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str

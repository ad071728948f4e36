"""
API schemas module.
"""

from .recording import (
    RecordOptions,
    GoogleAuth,
    RecordRequest,
    RecordResponse,
    StopResponse,
    SessionStatusResponse,
    PendingDownloadResponse,
    HealthCheckResponse,
    ErrorResponse,
)

__all__ = [
    "RecordOptions",
    "GoogleAuth",
    "RecordRequest",
    "RecordResponse",
    "StopResponse",
    "SessionStatusResponse",
    "PendingDownloadResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]

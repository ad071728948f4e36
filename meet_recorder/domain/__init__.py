"""
Domain layer exports.
"""

from .models import (
    SessionStatus,
    STATUS_RANK,
    ALLOWED_TRANSITIONS,
    AuthMethod,
    AuthContext,
    GoogleCredentials,
    CaptureOptions,
    can_transition,
    check_transition,
    parse_status,
    validate_meeting_url,
    new_session_document,
    utc_now,
)

__all__ = [
    "SessionStatus",
    "STATUS_RANK",
    "ALLOWED_TRANSITIONS",
    "AuthMethod",
    "AuthContext",
    "GoogleCredentials",
    "CaptureOptions",
    "can_transition",
    "check_transition",
    "parse_status",
    "validate_meeting_url",
    "new_session_document",
    "utc_now",
]

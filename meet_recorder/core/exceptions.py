"""
Custom exceptions for the Meet Recorder.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class RecorderException(Exception):
    """Base exception for Meet Recorder errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RecorderException):
    """Raised when request input is invalid."""
    pass


class SessionNotFoundError(RecorderException):
    """Raised when a recording session does not exist."""
    pass


class OutputNotFoundError(RecorderException):
    """Raised when a completed session has no file for the requested format."""
    pass


class InvalidTransitionError(RecorderException):
    """Raised when a status update would move a session backwards or out of a terminal state."""
    pass


class RecordingStartError(RecorderException):
    """Raised when a session fails before it starts recording."""
    pass


class AutomationStepFailure(RecorderException):
    """Raised when a UI step is not found after every probe was tried."""

    def __init__(self, step: str, tried: Optional[list] = None):
        self.step = step
        self.tried = tried or []
        super().__init__(
            f"UI step '{step}' not found after {len(self.tried)} probes",
            details={"step": step, "tried": self.tried},
        )


class AuthenticationError(RecorderException):
    """Raised when the sign-in sequence fails."""
    pass


class VerificationTimeoutError(AuthenticationError):
    """Raised when a secondary verification challenge is not completed in time."""
    pass


class AccessDeniedError(RecorderException):
    """Raised when the meeting host does not admit the bot."""
    pass


class CaptureProcessError(RecorderException):
    """Raised when the audio encoder fails to start or exits abnormally."""
    pass


class TranscodeError(RecorderException):
    """Raised when post-processing of the captured audio fails."""
    pass


# HTTP Exceptions for API responses
class HTTPInternalServerError(HTTPException):
    """500 Internal Server Error"""
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

"""
Core module - domain exceptions.
"""

from .exceptions import (
    RecorderException,
    ValidationError,
    SessionNotFoundError,
    OutputNotFoundError,
    InvalidTransitionError,
    RecordingStartError,
    AutomationStepFailure,
    AuthenticationError,
    VerificationTimeoutError,
    AccessDeniedError,
    CaptureProcessError,
    TranscodeError,
)

__all__ = [
    "RecorderException",
    "ValidationError",
    "SessionNotFoundError",
    "OutputNotFoundError",
    "InvalidTransitionError",
    "RecordingStartError",
    "AutomationStepFailure",
    "AuthenticationError",
    "VerificationTimeoutError",
    "AccessDeniedError",
    "CaptureProcessError",
    "TranscodeError",
]

"""
Application services used by the HTTP layer.
"""

from .session_registry import SessionRegistry
from .recording_manager import RecordingManager

__all__ = ["SessionRegistry", "RecordingManager"]

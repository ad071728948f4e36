"""
Configuration module for the Meet Recorder.
"""

from .settings import (
    Settings,
    settings,
    AudioFormat,
    ServerSettings,
    RecordingSettings,
    BrowserSettings,
    AuthSettings,
    RetentionSettings,
)
from .logger import logger, get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "AudioFormat",
    "ServerSettings",
    "RecordingSettings",
    "BrowserSettings",
    "AuthSettings",
    "RetentionSettings",
    "logger",
    "get_logger",
    "setup_logging",
]

"""
Meeting Handler Module

Browser automation for Google Meet (join, sign-in, liveness) and the
orchestrator that runs a whole recording session.
"""

from .browser import MeetBrowser
from .meet_handler import MeetAutomation
from .authenticator import GoogleAuthenticator, classify_auth_url
from .orchestrator import RecordingOrchestrator

__all__ = [
    "MeetBrowser",
    "MeetAutomation",
    "GoogleAuthenticator",
    "classify_auth_url",
    "RecordingOrchestrator",
]

"""
Storage module exports.
"""

from .session_store import SessionStore, METADATA_FILE

__all__ = ["SessionStore", "METADATA_FILE"]

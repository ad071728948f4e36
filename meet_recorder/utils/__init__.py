"""
Utility functions for the Meet Recorder.
"""

import time
import uuid


def generate_id(prefix: str = "", length: int = 16) -> str:
    """
    Generate a unique ID.

    Args:
        prefix: Optional prefix for the ID.
        length: Length of the random part.

    Returns:
        Unique ID string.
    """
    random_part = uuid.uuid4().hex[:length]
    return f"{prefix}{random_part}" if prefix else random_part


def generate_recording_id() -> str:
    """
    Generate a recording session id: ``rec_<epoch-ms>_<12 hex chars>``.
    """
    return generate_id(prefix=f"rec_{int(time.time() * 1000)}_", length=12)


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds.

    Returns:
        Formatted duration string (e.g., "1h 30m 45s").
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)

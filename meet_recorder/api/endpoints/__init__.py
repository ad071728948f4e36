"""
API endpoints module.
"""

from . import recordings, health

__all__ = ["recordings", "health"]

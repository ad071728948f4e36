"""
Scheduler Module
"""

from .retention_sweeper import RetentionSweeper

__all__ = ["RetentionSweeper"]

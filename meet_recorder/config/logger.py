"""
Logging configuration for the Meet Recorder.
Provides structured logging with file rotation and console output.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from datetime import datetime
from typing import Optional

from .settings import settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[41m",  # Red background
        "RESET": "\033[0m"       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        # Color a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{reset}"

        return super().format(record)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_file_logging: bool = True,
    colored: bool = True,
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_level: Override log level from settings
        log_file: Override log file path
        enable_file_logging: Whether to enable file logging
        colored: Use ANSI colors on the console handler
        log_dir: Override log directory from settings

    Returns:
        Configured logger instance
    """
    level = (log_level or settings.log_level).upper()

    # Create logger
    logger = logging.getLogger("meet_recorder")
    logger.setLevel(getattr(logging, level))
    logger.propagate = False

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level))
    console_fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    if colored:
        console_format = ColoredFormatter(fmt=console_fmt, datefmt="%Y-%m-%d %H:%M:%S")
    else:
        console_format = logging.Formatter(fmt=console_fmt, datefmt="%Y-%m-%d %H:%M:%S")
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # File handler with rotation
    if enable_file_logging:
        log_dir = Path(log_dir or settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_filename = log_file or str(log_dir / f"meet_recorder_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = RotatingFileHandler(
            log_filename,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(getattr(logging, level))
        file_format = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger with the given name.

    Args:
        name: Logger name (will be prefixed with 'meet_recorder.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"meet_recorder.{name}")


# Root package logger; handlers are attached by setup_logging()
logger = logging.getLogger("meet_recorder")

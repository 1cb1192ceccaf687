"""Internal logging utilities."""

import logging

# Create package logger
logger = logging.getLogger("otlpkit")

# Default to WARNING to avoid noise
logger.setLevel(logging.WARNING)


def log_debug(message: str) -> None:
    """Log a debug message."""
    logger.debug(message)


def log_info(message: str) -> None:
    """Log an info message."""
    logger.info(message)

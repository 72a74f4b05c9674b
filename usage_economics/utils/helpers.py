"""Utility helpers for Usage Economics."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "WARNING", log_format: Optional[str] = None) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Optional custom log format

    Returns:
        The package logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format or LOG_FORMAT,
        force=True
    )
    return logging.getLogger("usage_economics")

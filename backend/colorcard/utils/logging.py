"""
Color Card Structured Logging
Centralized logging configuration using loguru.
"""
import sys
from typing import Optional

from loguru import logger

from colorcard.config import config

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} | {message} | {extra}"


def configure_logging(level: Optional[str] = None) -> None:
    """(Re)install the stdout sink, e.g. at application startup."""
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level or config.LOG_LEVEL,
        serialize=False  # Set to True for JSON output
    )

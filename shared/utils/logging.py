"""
Logging configuration module.
Standard loguru setup shared by every runner.
"""

import os
import sys
from typing import Optional

from loguru import logger

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format: str = DEFAULT_FORMAT,
) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path; rotated at 10 MB, kept 7 days
        format: Console message format
    """
    logger.remove()

    # Container log viewers do not render ANSI codes
    colorize = os.getenv("NO_COLOR") is None

    logger.add(
        sys.stderr,
        format=format,
        level=level,
        colorize=colorize,
    )

    if log_file:
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"File logging enabled: {log_file}")

"""Loguru setup for the server process.

MCP speaks over stdout, so log records always go to stderr.
"""

import os
import sys

from loguru import logger


def setup_logger(level: str | None = None) -> None:
    level = (level or os.environ.get("JENKINS_HELPER_LOG_LEVEL") or "INFO").upper()
    logger_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan> - <level>{message}</level>"
    )
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=logger_format,
        diagnose=False,  # keeps credentials out of tracebacks
    )

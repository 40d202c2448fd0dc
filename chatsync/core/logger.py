"""
Package logger.

Import as ``from chatsync.core.logger import logger``.
"""

import logging
import sys

from chatsync.core.config import get_settings

LOGGER_NAME = "chatsync"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Create the package logger with a single stderr handler."""
    settings = get_settings()
    result = logging.getLogger(name)
    if not result.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        result.addHandler(handler)
    result.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return result


logger = setup_logger()

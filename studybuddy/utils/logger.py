"""
Logging setup for the studybuddy package.

Modules log through ``logging.getLogger(__name__)``; applications call
``setup_logging()`` once at startup to attach a console handler.
"""

import logging
import sys
from typing import Optional

from ..config import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "studybuddy"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name (defaults to config.logging.log_level)

    Returns:
        The configured ``studybuddy`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel((level or config.logging.log_level).upper())

    # Idempotent: only one console handler, however often this is called
    if not any(getattr(h, "_studybuddy", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._studybuddy = True
        logger.addHandler(handler)

    return logger

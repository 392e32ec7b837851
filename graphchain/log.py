"""
Logging setup for applications using graphchain.

Library modules only create loggers (`logging.getLogger(__name__)`); the
application decides where the records go by calling `setup_logging` once.
"""

import logging
from typing import Optional

from .config import settings


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure logging for graphchain.

    Args:
        level: Log level string (e.g. 'INFO', 'DEBUG'); settings.log_level by default

    Returns:
        The package logger.
    """
    level = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s  %(name)-24s  %(levelname)-7s  %(message)s",
    )
    logger = logging.getLogger("graphchain")
    logger.setLevel(getattr(logging, level, logging.INFO))
    return logger

"""Logging configuration for the Career Compass matching pipeline."""

import logging
import sys
from typing import Optional

from career_compass.config import LOG_LEVEL


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Get a configured logger instance (stdout, one handler per logger)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        if level is None:
            logger.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    if level is not None:
        logger.setLevel(level)
    return logger

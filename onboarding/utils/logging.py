"""Logging setup for the onboarding package.

Module loggers are children of the ``onboarding`` logger, which owns the one
console handler. Its level is the level of the whole package, so
``configure_logging`` at startup is enough to apply ``Settings.log_level``.
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "onboarding"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def configure_logging(level: str) -> None:
    """Set the level for every onboarding logger (DEBUG, INFO, WARNING, ...)."""
    _package_logger().setLevel(_parse_level(level))


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a module logger under the package logger.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional override for this logger only; otherwise it follows
            the package level
    """
    _package_logger()
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(_parse_level(level))
    return logger

"""
Logging setup for livesync.

Every module logs through a child of the "livesync" logger, e.g.
get_logger("core.cache_store") -> "livesync.core.cache_store". The level
comes from LOG_LEVEL (default INFO) and output goes to stdout once.
"""
import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "livesync"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(ROOT_LOGGER_NAME)


def configure(level: Optional[str] = None) -> logging.Logger:
    """(Re)apply the level to the package logger; installs the stdout handler once."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)

    # Handled here only, never by the root logger
    logger.propagate = False
    return logger


configure()


def get_logger(name: str = None) -> logging.Logger:
    """Package logger, or the `livesync.<name>` child when a name is given."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logger

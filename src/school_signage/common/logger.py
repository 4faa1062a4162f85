"""
Logging setup shared by every module.
"""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LEVEL = "INFO"

_root_configured = False


def _configure_root(level: str) -> None:
    """Attach a single stream handler to the package root logger."""
    global _root_configured

    root = logging.getLogger("school_signage")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
    _root_configured = True


def set_log_level(level: str) -> None:
    """
    Change the level of every school_signage logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
    """
    _configure_root(level.upper())


def setup_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Args:
        name: Usually __name__ of the calling module

    Returns:
        Configured logger
    """
    if not _root_configured:
        _configure_root(os.environ.get("SIGNAGE_LOG_LEVEL", DEFAULT_LEVEL).upper())
    return logging.getLogger(name)

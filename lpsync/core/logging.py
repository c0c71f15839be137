"""
Logging configuration for lpsync.

Every module asks for its logger through get_logger() so import runs share
one stdout format. The CLI raises or lowers verbosity with set_log_level(),
which also applies to loggers created afterwards.
"""

import logging
import sys
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_loggers: Dict[str, logging.Logger] = {}
_level_override: Optional[int] = None


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get a configured logger for a module.

    Args:
        name: Logger name (e.g., 'lpsync.competency.importer')
        level: Logging level (default: INFO, unless set_log_level() was called)

    Returns:
        Configured logger
    """
    if name in _loggers:
        return _loggers[name]

    if _level_override is not None:
        level = _level_override

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def set_log_level(level: int) -> None:
    """Apply a level to every lpsync logger, existing and future."""
    global _level_override

    _level_override = level
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)

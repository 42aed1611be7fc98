import logging
import os
import sys
from typing import Optional, Set

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_managed: Set[str] = set()


def _level_from_env(default: int = logging.INFO) -> int:
    env_level = os.getenv("HRAG_LOG_LEVEL")
    if env_level:
        return getattr(logging, env_level.upper(), default)
    return default


def get_logger(name: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name or "hrag")
    if logger.handlers:
        return logger
    logger.setLevel(_level_from_env())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    _managed.add(logger.name)
    return logger


def set_level(level: str) -> None:
    """Apply a configured level to every logger handed out so far.
    HRAG_LOG_LEVEL still wins when set."""
    resolved = _level_from_env(getattr(logging, level.upper(), logging.INFO))
    for name in _managed:
        logging.getLogger(name).setLevel(resolved)

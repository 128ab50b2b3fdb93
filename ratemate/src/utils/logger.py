"""
RateMate - Logging
===================
Logger factory used by every RateMate module, plus a switch for the
chattier third-party loggers pulled in by the provider stack.

Level resolution, first match wins:
  1. the ``level`` argument
  2. ``settings.LOG_LEVEL`` (e.g. ``LOG_LEVEL=INFO`` in ``.env``)
  3. ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

Usage:
    from ratemate.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[ASK] Pipeline total: %.1fms", elapsed_ms)
"""

import logging
import sys

from ratemate.config.settings import settings

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}

# HTTP clients and SDKs that log every request at INFO/DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "google_genai", "google.auth", "urllib3", "pymongo", "motor", "lancedb")


def _default_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return _ENV_LEVELS.get(settings.ENV, logging.INFO)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return *name*'s logger with a single stdout handler attached.

    Args:
        name:  Usually the calling module's ``__name__``.
        level: Optional override of the resolved level.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = level if level is not None else _default_level()
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def quiet_third_party(level: int = logging.WARNING) -> None:
    """Raise the threshold of ``NOISY_LOGGERS`` so request logs stay readable."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)

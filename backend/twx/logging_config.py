"""Process-wide logging setup."""
from __future__ import annotations

import logging
import sys

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger("twx")


def _log_uncaught_exception(exc_type, exc_value, exc_traceback) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("[UNCAUGHT EXCEPTION]", exc_info=(exc_type, exc_value, exc_traceback))


def log_unhandled_rejection(loop, context: dict) -> None:
    """asyncio loop exception handler: log only, keep serving."""
    exc = context.get("exception")
    logger.error("[UNHANDLED REJECTION] %s", context.get("message"), exc_info=exc)


def configure_logging(level: str | None = None) -> None:
    """Configure stdlib logging once and install the uncaught-exception logger."""
    logging.basicConfig(
        format=LOG_FORMAT,
        stream=sys.stdout,
        level=(level or settings.LOG_LEVEL).upper(),
    )
    sys.excepthook = _log_uncaught_exception

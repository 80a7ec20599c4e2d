"""
Logging setup for smokeless.
Every module logs through setup_logger(__name__); all loggers share one
rotating log file and one console stream.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LOG_LEVEL, LOG_FORMAT, LOG_DIR, LOG_MAX_BYTES, LOG_BACKUP_COUNT

LOG_FILE = LOG_DIR / "smokeless.log"

_handlers: Optional[list[logging.Handler]] = None


def _shared_handlers() -> list[logging.Handler]:
    global _handlers
    if _handlers is None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter(LOG_FORMAT)

        # File: everything, including debug
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

        # Console: INFO and above
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)

        _handlers = [file_handler, console_handler]
    return _handlers


def setup_logger(name: str) -> logging.Logger:
    """
    Configure and return the logger for a module.

    Args:
        name: Logger name (typically __name__)
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    logger.propagate = False

    # Re-importing a module must not stack duplicate handlers
    logger.handlers.clear()
    for handler in _shared_handlers():
        logger.addHandler(handler)

    return logger


def log_event_stats(events, logger: logging.Logger, name: str = "Events"):
    """Log count, puff total and time range of a sequence of intake events."""
    if not events:
        logger.warning(f"{name}: no events")
        return

    logger.info(
        f"{name}: {len(events)} events, "
        f"{sum(e.puffs for e in events)} puffs, "
        f"range: {events[0].occurred_at} to {events[-1].occurred_at}"
    )

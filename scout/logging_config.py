"""Centralized logging configuration for Steam Scout."""

import logging
import sys
from typing import Dict, Optional

# Bibliothèques trop bavardes au niveau INFO
QUIET_LOGGERS: Dict[str, int] = {
    "aiohttp": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "svix": logging.WARNING,
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"


def parse_level(level: Optional[str]) -> int:
    """``"debug"`` -> ``logging.DEBUG``; None means INFO. Unknown names raise ValueError."""
    if not level:
        return logging.INFO
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure logging for the API process.

    uvicorn is started with ``log_config=None``, so its loggers propagate to
    the root handler installed here and share the same format.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO if not specified.
    """
    log_level = parse_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, log_level))
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True

    logging.getLogger("scout").setLevel(log_level)

    logger = logging.getLogger("scout.logging_config")
    logger.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically called with __name__)."""
    return logging.getLogger(name)

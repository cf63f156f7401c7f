"""Logging setup for hosts embedding the facade.

The library itself only emits through ``loguru.logger``; the host decides
where records go.  ``setup_logging`` is a convenience for scripts and tests.
"""

from __future__ import annotations

import sys

from loguru import logger

from geofacade.config import settings

_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str | None = None) -> int:
    """Replace loguru's default sink with a single stderr sink.

    Returns the sink id so callers can ``logger.remove()`` it later.
    """
    logger.remove()
    return logger.add(sys.stderr, level=(level or settings.log_level).upper(), format=_FORMAT)

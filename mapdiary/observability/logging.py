"""
Logging setup for mapdiary.

Every module logger lives under the ``mapdiary`` namespace. The first
``get_logger`` call attaches one stream handler to that namespace logger, so
uvicorn's own root configuration neither duplicates nor swallows our lines.
"""

from __future__ import annotations

import logging
from typing import Final

from mapdiary.infrastructure.settings import LOG_LEVEL

ROOT_LOGGER: Final[str] = "mapdiary"
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """Attach the stream handler once and (re)apply ``level`` to the namespace."""
    root = logging.getLogger(ROOT_LOGGER)
    if not any(getattr(h, "_mapdiary", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._mapdiary = True  # type: ignore[attr-defined]
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(_level(level))
    return root


def get_logger(name: str) -> logging.Logger:
    """Module logger under the ``mapdiary`` namespace."""
    configure_logging()
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)

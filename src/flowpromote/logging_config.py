"""Logging setup for the flowpromote command line."""

from __future__ import annotations
import logging


_LOGGER_NAME = "flowpromote"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger(_LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    if not any(getattr(h, "_flowpromote", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._flowpromote = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


__all__ = ["configure_logging"]

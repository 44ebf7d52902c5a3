from __future__ import annotations

"""Logging configuration for the importer.

Provides a configured logger with optional file logging when debug is enabled.
"""
import logging
from logging import Logger
from pathlib import Path

LOGGER_NAME = "aliexpress_importer"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def get_logger(name: str = LOGGER_NAME, *, debug: bool = False) -> Logger:
    logger = logging.getLogger(name)
    if name != LOGGER_NAME and name.startswith(LOGGER_NAME + "."):
        # Child loggers propagate to the package logger's handlers
        return logger
    if logger.handlers:
        if debug:
            set_debug(logger)
        return logger

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(ch)

    # File handler added lazily via add_file_handler
    return logger


def set_debug(logger: Logger) -> None:
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)


def add_file_handler(logger: Logger, log_path: Path) -> None:
    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(fh)

"""Logging setup shared by the doc2readme pipeline and CLI."""

from __future__ import annotations

import logging
from pathlib import Path
import sys

_LOGGER_NAME = "doc2readme"
_CONSOLE_FORMAT = "[doc2readme] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a child of the ``doc2readme`` logger (``doc2readme.<name>``)."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send pipeline logs to stderr, keeping stdout free for rendered output.

    ``verbose`` wins over ``quiet``; a ``log_file`` always records DEBUG.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # repeated CLI calls in one process must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]

"""Logging configuration for the fm shell.

Log records go to stderr through Rich and, when enabled, to a rotating file.
Only the ``fmshell`` logger is configured so embedding applications keep
control of the root logger.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "fmshell"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_BYTES = 1024 * 1024
BACKUP_COUNT = 3


def setup_logging(level: str = "info", log_file: str | Path | None = None) -> logging.Logger:
    """Configure the ``fmshell`` logger.

    Args:
        level: Level name (``debug``, ``info``, ``warn``/``warning``, ``error``).
        log_file: Also write records to this file, rotated at 1 MiB.

    Returns:
        The configured logger.
    """
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(name)
    logger.propagate = False

    # Clear existing handlers so repeated setup does not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(name)
    logger.addHandler(console_handler)

    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file_path,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(name)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.debug("Logging configured.")
    return logger

"""Logging for the ``machinegraph`` CLI.

Library modules only call ``logging.getLogger(__name__)``; this module is
where the CLI attaches handlers to the package logger.  Console records go
to stderr because stdout is reserved for JSON results.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "machinegraph"
FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_number(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Attach fresh handlers to the ``machinegraph`` logger and return it.

    Parameters
    ----------
    level:
        Level name, case-insensitive; unknown names fall back to ``INFO``.
    log_file:
        When given, records are also appended to this file (parent
        directories are created).
    console:
        Console for the Rich handler, a stderr console by default.
    """
    numeric = _level_number(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console if console is not None else Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=numeric <= logging.DEBUG,
        )
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(numeric)
        logger.addHandler(handler)
    return logger

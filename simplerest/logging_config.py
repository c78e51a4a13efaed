"""Logging setup for simplerest.

Library modules only create loggers with logging.getLogger(__name__); nothing
is emitted until an application (or the CLI) attaches handlers here. Output
goes to stderr because the CLI reserves stdout for response bodies.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "simplerest"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    format_string: str | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach handlers to the simplerest package logger.

    Args:
        level: Level name such as "DEBUG" or "warning". Unknown names fall
            back to INFO.
        log_file: Also append records to this file.
        format_string: Record format; defaults to DEFAULT_FORMAT.
        force: Replace handlers attached by an earlier call. Without it, a
            logger that already has handlers only gets its level updated.

    Returns:
        The package logger.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric_level)
    logger.propagate = False

    if logger.handlers and not force:
        return logger

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger

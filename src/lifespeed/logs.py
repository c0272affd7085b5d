"""Logging bootstrap for the Lifespeed CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from lifespeed.config import LoggingSettings

LOG_FILENAME = "lifespeed.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_HANDLER_NAME = "lifespeed-file"


def configure_logging(
    settings: LoggingSettings,
    log_dir: Path,
    *,
    verbose: bool = False,
) -> Path:
    """Attach a size-rotating file handler to the ``lifespeed`` logger.

    Calling this again replaces the handler installed by a previous call.

    Args:
        settings: Level and rotation settings.
        log_dir: Directory receiving ``lifespeed.log``.
        verbose: Force ``DEBUG`` regardless of ``settings.level``.

    Returns:
        Path: Location of the log file.
    """

    level = logging.DEBUG if verbose else logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    log_dir = log_dir.expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    logger = logging.getLogger("lifespeed")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()

    handler = RotatingFileHandler(
        log_path,
        maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
        backupCount=max(0, settings.backup_count),
        encoding="utf-8",
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    return log_path


__all__ = ["LOG_FILENAME", "configure_logging"]

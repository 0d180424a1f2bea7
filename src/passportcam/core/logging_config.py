"""
Logging setup for passportcam.

Modules log through `logging.getLogger(__name__)`; the entry point calls
`setup_logging()` once to attach handlers to the package logger.
"""
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "passportcam"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the package logger with a console handler and an optional
    rotating file handler. Calling it again does not add duplicate handlers.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

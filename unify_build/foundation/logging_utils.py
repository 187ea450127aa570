"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_logger(
    name: str = "unify_build",
    *,
    log_path: str | os.PathLike[str] | None = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Configure a logger with a console handler and an optional UTF-8 file handler."""

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if log_path is not None else level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_path is not None:
        directory = os.path.dirname(os.fspath(log_path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Logging initialized (name=%s)", name)
    return logger

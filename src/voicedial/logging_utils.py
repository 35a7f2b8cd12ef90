"""Logging helpers."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(
    log_dir: str = "logs",
    level: int = logging.INFO,
    console: bool = False,
) -> tuple[logging.Logger, str]:
    """Attach a rotating file handler (and optionally stderr) to "voicedial"."""
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "voicedial.log")

    logger = logging.getLogger("voicedial")
    logger.setLevel(level)
    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8"
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    # RotatingFileHandler is itself a StreamHandler subclass.
    has_console = any(
        type(h) is logging.StreamHandler for h in logger.handlers
    )
    if console and not has_console:
        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        stream.setLevel(logging.WARNING)
        logger.addHandler(stream)

    return logger, log_path

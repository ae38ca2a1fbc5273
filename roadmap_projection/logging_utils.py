from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


LOGGER_NAME = "roadmap_projection"
LOG_FILENAME = "roadmap_projection.log"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_rotating_handler(
    log_dir: Path,
    filename: str = LOG_FILENAME,
    *,
    retention: int = 5,
    max_bytes: int = 1024 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler under `log_dir`."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Attach console (and optionally rotating file) handlers to the package logger.

    Safe to call repeatedly; handlers installed by an earlier call are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, "_roadmap_projection", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    handlers = [console]
    if log_dir is not None:
        handlers.append(build_rotating_handler(Path(log_dir), formatter=formatter))

    for handler in handlers:
        handler._roadmap_projection = True
        logger.addHandler(handler)
    return logger

"""Loguru sinks: coloured console plus a rotating file."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

from auratrade.app.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logger(settings: LoggingConfig | None = None, log_dir: str | Path | None = None):
    settings = settings or LoggingConfig()
    path = Path(log_dir if log_dir is not None else settings.directory)
    path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stdout, level=settings.level, format=CONSOLE_FORMAT, enqueue=True)
    logger.add(
        path / settings.filename,
        level=settings.level,
        rotation=settings.rotation,
        retention=settings.retention,
        enqueue=True,
        encoding="utf-8",
    )
    logger.debug("Logging to {} level={}", path / settings.filename, settings.level)
    return logger

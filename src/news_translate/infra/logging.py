"""Logging utilities for news_translate."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger


def setup_logging(
    enable_loguru: bool = True,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> None:
    """Configure application-wide logging.

    Library modules log through ``logging.getLogger(__name__)``; this routes
    those records into loguru so the CLI gets one consistent sink.

    Args:
        enable_loguru: When True, bridge stdlib logging records to loguru.
        level: Default logging level for stdlib logging.
        log_file: Optional rotating file sink (loguru only).
    """
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    if not enable_loguru:
        return

    _bridge_standard_logging(loguru_logger)
    if log_file is not None:
        loguru_logger.add(
            str(log_file),
            level=logging.getLevelName(level),
            rotation="5 MB",
            retention=3,
            encoding="utf-8",
        )


def _bridge_standard_logging(logger: "loguru.Logger") -> None:
    """Redirect stdlib logging messages to loguru."""
    class LoguruHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno
            logger.opt(depth=6, exception=record.exc_info).bind(name=record.name).log(level, record.getMessage())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(LoguruHandler())

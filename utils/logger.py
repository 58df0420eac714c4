# utils/logger.py
"""
Logging for the proxy and the workspace clients.

Each component logger writes to stderr through Rich and, when LOG_TO_FILE is
on, to a daily rotating file under LOG_DIR. LOG_LEVEL applies to both.
"""

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from utils.config import get_settings

settings = get_settings()

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _level() -> int:
    level = logging.getLevelName(settings.log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def _rich_handler() -> logging.Handler:
    # markup off: log lines carry user questions and filenames verbatim
    return RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False
    )


def _file_handler(name: str) -> logging.Handler:
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log",
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, attaching handlers the first time it is asked for."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = _level()
    logger.setLevel(level)
    logger.propagate = False

    handlers = [_rich_handler()]
    if settings.log_to_file:
        handlers.append(_file_handler(name))
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger


def get_api_logger(component: str) -> logging.Logger:
    """Logger for a proxy component, e.g. api.gateway"""
    return get_logger(f"api.{component}")


def get_workspace_logger(component: str) -> logging.Logger:
    """Logger for a client-side workspace component, e.g. workspace.research"""
    return get_logger(f"workspace.{component}")

"""
Logging helpers for scraper modules.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level() -> str:
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        return env_level.upper()
    if os.getenv("SCRAPER_DEBUG", "0") == "1" or os.getenv("DEBUG", "0") == "1":
        return "DEBUG"
    return "INFO"


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=_resolve_level(), format=LOG_FORMAT)
    return logging.getLogger(name)


def get_scraper_logger(source: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Logger for one scraper with error and combined log files.

    Files are written to ``<log_dir>/<source>-error.log`` (errors only) and
    ``<log_dir>/<source>-combined.log``. Handlers are attached once per logger.
    """
    logger = get_logger(f"scraper.{source}")
    if getattr(logger, "_file_handlers_attached", False):
        return logger

    directory = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create log directory %s: %s", directory, e)
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    error_handler = logging.FileHandler(directory / f"{source}-error.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    combined_handler = logging.FileHandler(directory / f"{source}-combined.log", encoding="utf-8")
    combined_handler.setFormatter(formatter)

    logger.addHandler(error_handler)
    logger.addHandler(combined_handler)
    logger._file_handlers_attached = True
    return logger

"""Logging configuration for Friplass."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import get_env

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so a second call replaces them
_HANDLER_FLAG = "_friplass_handler"


def setup_logging(log_level: Optional[str] = None, log_dir: str = "./logs") -> None:
    """
    Configure logging for the CLI and the development server.

    Safe to call more than once: handlers from an earlier call are replaced,
    not stacked.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Defaults to the LOG_LEVEL env var, then INFO.
        log_dir: Daily log files go here, but only if the directory exists
    """
    level_name = (log_level or get_env("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    log_path = Path(log_dir)
    if log_path.is_dir():
        handlers.append(logging.FileHandler(log_path / f"friplass_{datetime.now():%Y%m%d}.log"))

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_FLAG, True)
        root_logger.addHandler(handler)

    # Werkzeug logs every request at INFO
    logging.getLogger("werkzeug").setLevel(max(level, logging.WARNING))

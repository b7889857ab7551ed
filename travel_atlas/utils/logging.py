"""
NSW Travel-to-Work Atlas - Logging Configuration
Plain-text console logs in development, JSON lines in production

The pipeline entry point calls setup_logging() once; every other module
takes a child logger from get_logger(__name__) and inherits the root
handlers installed here.
"""

import logging
import os
import sys
from datetime import datetime

from pythonjsonlogger import jsonlogger

from config.settings import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def resolve_log_level(level_name: str) -> int:
    """
    Map a LOG_LEVEL setting to a logging level.

    Case-insensitive; an unknown name falls back to INFO.
    """
    level = logging.getLevelName(str(level_name).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _formatter() -> logging.Formatter:
    if settings.ENVIRONMENT == "production":
        return jsonlogger.JsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(name: str = "pipeline") -> logging.Logger:
    """
    Configure the run logger and mirror its handlers on the root logger.

    Args:
        name: Logger name, also used for the daily log file <name>_<YYYYMMDD>.log

    Returns:
        Configured logger instance
    """
    level = resolve_log_level(settings.LOG_LEVEL)
    formatter = _formatter()

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_file = os.path.join(settings.LOG_DIR, f"{name}_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Module loggers from get_logger() propagate to root
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = list(logger.handlers)

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """Module logger; handlers come from setup_logging()."""
    return logging.getLogger(module_name)

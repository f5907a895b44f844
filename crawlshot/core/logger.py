"""Structured logging with rotation for the crawl worker and API.

This module provides a configured logger with console and rotating file
handlers. Logs are human-readable with timestamp, level, module, and message.

Examples:
    >>> from crawlshot.core.logger import get_logger
    >>> logger = get_logger("crawlshot")
    >>> logger.info("Worker is listening for jobs")
    2026-01-14 23:45:00,123 | INFO | crawlshot | Worker is listening for jobs
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from crawlshot.core.config import Settings

# Human-readable log format with timestamp, level, module name, and message
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Default log file path (in .cache directory to keep project root clean)
DEFAULT_LOG_FILE = Path(".cache/crawlshot.log")

# Rotating file handler limits (100MB max file size, 5 backup files)
MAX_LOG_SIZE_BYTES = 100 * 1024 * 1024
BACKUP_COUNT = 5


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Path | None = None,
) -> logging.Logger:
    """Create and configure a logger with console and rotating file handlers.

    The logger includes:
    - Console handler: INFO level, writes to stderr
    - Rotating file handler: DEBUG level, 100MB max size, 5 backups
    - Human-readable format: timestamp | level | module | message

    Module loggers created with ``logging.getLogger(__name__)`` under the
    ``crawlshot`` namespace propagate to the logger configured here.

    Args:
        name: Logger name (typically the package name "crawlshot")
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR,
            CRITICAL). Defaults to INFO.
        log_file: Optional path to log file. If None, defaults to
            .cache/crawlshot.log. Parent directories are created automatically.

    Returns:
        Configured logging.Logger instance. Calling this function again
        replaces the handlers.

    Raises:
        ValueError: If log_level is not a valid logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to allow reconfiguration
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is None:
        log_file = DEFAULT_LOG_FILE

    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_LOG_SIZE_BYTES,
        backupCount=BACKUP_COUNT,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the package logger from settings.

    Args:
        settings: Loaded application settings

    Returns:
        The configured ``crawlshot`` package logger
    """
    return get_logger(
        "crawlshot",
        log_level=settings.log_level,
        log_file=settings.log_file,
    )

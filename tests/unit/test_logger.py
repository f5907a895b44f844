"""Unit tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from crawlshot.core.config import Settings
from crawlshot.core.logger import LOG_FORMAT, configure_logging, get_logger


class TestLoggerCreation:
    """Test logger creation and handler setup."""

    def test_logger_creates_console_and_file_handlers(self, tmp_path: Path) -> None:
        """Test that logger has a console handler and a rotating file handler."""
        logger = get_logger("test_crawlshot_handlers", log_file=tmp_path / "a.log")

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        console_handlers = [
            h for h in logger.handlers if not isinstance(h, RotatingFileHandler)
        ]
        assert len(logger.handlers) == 2
        assert console_handlers[0].level == logging.INFO
        # 100MB = 104857600 bytes
        assert file_handlers[0].maxBytes == 104857600
        assert file_handlers[0].backupCount == 5
        assert file_handlers[0].level == logging.DEBUG

    def test_logger_creates_parent_directories(self, tmp_path: Path) -> None:
        """Test that missing log directories are created."""
        log_file = tmp_path / "nested" / "dir" / "crawl.log"

        get_logger("test_crawlshot_dirs", log_file=log_file)

        assert log_file.parent.is_dir()

    def test_reconfiguring_replaces_handlers(self, tmp_path: Path) -> None:
        """Test calling get_logger twice does not duplicate handlers."""
        get_logger("test_crawlshot_reconfig", log_file=tmp_path / "a.log")
        logger = get_logger("test_crawlshot_reconfig", log_file=tmp_path / "b.log")

        assert len(logger.handlers) == 2


class TestLoggerLevels:
    """Test log level handling."""

    def test_level_is_case_insensitive(self, tmp_path: Path) -> None:
        """Test lowercase level names are accepted."""
        logger = get_logger("test_crawlshot_level", "debug", tmp_path / "a.log")

        assert logger.level == logging.DEBUG

    def test_invalid_level_raises(self, tmp_path: Path) -> None:
        """Test an unknown level name raises ValueError."""
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("test_crawlshot_invalid", "LOUD", tmp_path / "a.log")


class TestLoggerFormatting:
    """Test logger formatting configuration."""

    def test_file_output_is_human_readable(self, tmp_path: Path) -> None:
        """Test records are written as timestamp | level | module | message."""
        log_file = tmp_path / "fmt.log"
        logger = get_logger("test_crawlshot_fmt", log_file=log_file)

        logger.warning("Tile written")
        for handler in logger.handlers:
            handler.flush()

        line = log_file.read_text().strip()
        assert LOG_FORMAT.count("|") == 3
        assert " | WARNING | test_crawlshot_fmt | Tile written" in line


def test_configure_logging_uses_settings(settings: Settings) -> None:
    """Test the package logger is configured from settings."""
    logger = configure_logging(settings)

    assert logger.name == "crawlshot"
    file_handler = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
    assert Path(file_handler.baseFilename) == settings.log_file.absolute()

"""
Unit tests for configuration and logging setup.
"""

import logging

import pytest
from pydantic import ValidationError

from api.config import APIConfig
from utilities.config import AppConfig
from utilities.logger import get_logger, setup_logging


class TestAppConfig:
    """Test cases for AppConfig."""

    def test_defaults(self):
        config = AppConfig(_env_file=None)

        assert config.books_collection == "books"
        assert config.users_collection == "users"
        assert config.log_level == "INFO"
        assert config.get_log_file_path() is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MONGODB_DATABASE", "bookshelf_staging")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = AppConfig(_env_file=None)

        assert config.mongodb_database == "bookshelf_staging"
        assert config.log_level == "DEBUG"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError) as exc_info:
            AppConfig(_env_file=None, log_format="xml")

        assert "log_format must be one of" in str(exc_info.value)


class TestAPIConfig:
    """Test cases for APIConfig."""

    def test_page_size_defaults(self):
        config = APIConfig(_env_file=None)

        assert config.books_page_size == 15
        assert config.users_page_size == 12
        assert config.max_page_size == 100

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            APIConfig(_env_file=None, max_page_size=0)


class TestLogging:
    """Test cases for setup_logging."""

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "api.log"
        root = logging.getLogger()
        handlers = list(root.handlers)

        try:
            setup_logging(log_level="INFO", log_format="console", log_file=log_file)
            assert log_file.parent.exists()
            assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        finally:
            for handler in root.handlers:
                if handler not in handlers:
                    root.removeHandler(handler)
                    handler.close()

    def test_get_logger(self):
        logger = get_logger("tests")
        assert hasattr(logger, "info")

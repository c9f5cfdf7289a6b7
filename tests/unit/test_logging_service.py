"""Tests for logging configuration."""

import logging
from unittest.mock import patch

from rent_billing.services.logging import get_log_level, setup_logging


class TestGetLogLevel:
    """Test level name resolution."""

    def test_explicit_level_wins(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "ERROR"}, clear=False):
            assert get_log_level("debug") == logging.DEBUG

    def test_falls_back_to_environment(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "WARNING"}, clear=False):
            assert get_log_level() == logging.WARNING

    def test_unknown_name_defaults_to_info(self):
        assert get_log_level("LOUD") == logging.INFO


class TestSetupLogging:
    """Test root logger configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self, tmp_path) -> None:
        log_file = tmp_path / "nested" / "billing.log"
        assert not log_file.parent.exists()

        setup_logging(str(log_file))

        assert log_file.parent.exists()

    def test_returns_package_logger(self, tmp_path) -> None:
        logger = setup_logging(str(tmp_path / "billing.log"))

        assert logger.name == "rent_billing"

    def test_stdout_and_file_handlers_at_configured_level(self, tmp_path) -> None:
        setup_logging(str(tmp_path / "billing.log"), level="WARNING")

        assert len(self.root_logger.handlers) == 2
        assert self.root_logger.level == logging.WARNING
        assert all(handler.level == logging.WARNING for handler in self.root_logger.handlers)

    def test_writes_formatted_records_to_file(self, tmp_path) -> None:
        log_file = tmp_path / "billing.log"
        setup_logging(str(log_file), level="INFO")

        logging.getLogger("rent_billing.services.allocation_service").info("Allocated payment 7")

        log_contents = log_file.read_text()
        assert "Allocated payment 7" in log_contents
        assert "rent_billing.services.allocation_service - INFO" in log_contents
        # ISO format: [YYYY-MM-DD HH:MM:SS]
        assert log_contents.startswith("[20")

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path) -> None:
        log_file = tmp_path / "billing.log"
        dummy_handler = logging.StreamHandler()
        self.root_logger.addHandler(dummy_handler)

        setup_logging(str(log_file))
        setup_logging(str(log_file))

        assert len(self.root_logger.handlers) == 2
        assert dummy_handler not in self.root_logger.handlers

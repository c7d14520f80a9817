"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from slidegate.app.core.logging import (
    JSONFormatter,
    ContextFilter,
    get_logger,
    get_logging_config,
    get_log_context,
    setup_logging,
)
from slidegate.app.rate_limit import InMemoryStorage, SlidingWindowLimiter


def _record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        """Test basic JSON formatting."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Test JSON formatting with decision context fields."""
        record = _record("Rate limit exceeded")
        record.identity = "user-1"
        record.limit = 10
        record.accepted = False
        record.remaining = 0

        data = json.loads(JSONFormatter().format(record))

        assert data["identity"] == "user-1"
        assert data["limit"] == 10
        assert data["accepted"] is False
        assert data["remaining"] == 0
        assert "extra" not in data

    def test_json_format_skips_none_context(self):
        record = _record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))
        assert "identity" not in data
        assert "storage" not in data

    def test_json_format_with_extra_fields(self):
        """Test JSON formatting with extra custom fields."""
        record = _record("Custom event")
        record.custom_field = "custom_value"
        record.another_field = 42

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["custom_field"] == "custom_value"
        assert data["extra"]["another_field"] == 42

    def test_json_format_with_exception(self):
        """Test JSON formatting with exception info."""
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()
        assert ContextFilter().filter(record) is True
        for field in ContextFilter.CONTEXT_DEFAULTS:
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.identity = "existing-identity"
        ContextFilter().filter(record)
        assert record.identity == "existing-identity"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("slidegate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        with patch("slidegate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "DEBUG"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        with patch("slidegate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"

            config = get_logging_config()

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["slidegate"]["level"] == "WARNING"

    def test_context_filter_added(self):
        config = get_logging_config()
        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_context_filters_none(self):
        context = get_log_context(identity="user-1", limit=None, storage="redis")
        assert context == {"identity": "user-1", "storage": "redis"}

    def test_context_with_extra(self):
        context = get_log_context(identity="user-1", accepted=False, hits=3)
        assert context["accepted"] is False
        assert context["hits"] == 3


def test_get_logger_default_name():
    assert get_logger().name == "slidegate"


class TestIntegration:
    """Integration tests for logging system."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        package_logger = logging.getLogger("slidegate")
        package_logger.handlers.clear()
        package_logger.propagate = True
        logging.getLogger().handlers.clear()

    def test_rejection_logged_as_json(self, capsys, clock):
        with patch("slidegate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "INFO"
            setup_logging()

        limiter = SlidingWindowLimiter(1, 60, InMemoryStorage(clock=clock), clock=clock)
        limiter.consume("user-1")
        limiter.consume("user-1")

        lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
        data = json.loads(lines[-1])

        assert data["level"] == "INFO"
        assert data["logger"] == "slidegate.app.rate_limit.limiter"
        assert data["identity"] == "user-1"
        assert data["accepted"] is False
        assert data["hit_count"] == 2
        assert data["storage"] == "memory"

"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from briefgate.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
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
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_gate_context(self):
        record = make_record("Gate rejected image request: COOLDOWN")
        record.request_id = "req-1"
        record.client_id = "203.0.113.7"
        record.operation = "image"
        record.code = "COOLDOWN"
        record.duration_ms = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["client_id"] == "203.0.113.7"
        assert data["operation"] == "image"
        assert data["code"] == "COOLDOWN"
        assert data["duration_ms"] == 12.5
        assert "extra" not in data

    def test_none_context_values_are_omitted(self):
        record = make_record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "client_id" not in data
        assert "operation" not in data

    def test_json_format_with_extra_fields(self):
        record = make_record()
        record.gate_store = "InMemoryGateStore"

        data = json.loads(JSONFormatter().format(record))
        assert data["extra"]["gate_store"] == "InMemoryGateStore"

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = make_record()

        assert ContextFilter().filter(record) is True
        for field in ("request_id", "client_id", "operation", "code", "path", "method", "status_code", "duration_ms"):
            assert hasattr(record, field)
            assert getattr(record, field) is None

    def test_preserves_existing_values(self):
        record = make_record()
        record.client_id = "198.51.100.4"

        ContextFilter().filter(record)
        assert record.client_id == "198.51.100.4"


class TestLoggingConfig:
    """Test dictConfig generation."""

    def test_text_format_by_default(self):
        with patch("briefgate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "text"
        assert config["handlers"]["error_console"]["level"] == "ERROR"
        assert "briefgate" in config["loggers"]
        assert config["filters"]["context"]["()"] == "briefgate.app.core.logging.ContextFilter"

    def test_unknown_format_falls_back_to_text(self):
        with patch("briefgate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "xml"
            mock_settings.log_level = "INFO"
            config = get_logging_config()

        assert config["formatters"] == {"text": {"format": config["formatters"]["text"]["format"]}}

    def test_json_format(self):
        with patch("briefgate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "debug"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"] == "briefgate.app.core.logging.JSONFormatter"
        assert config["loggers"]["briefgate"]["level"] == "DEBUG"

    def test_setup_logging_quiets_noisy_libraries(self):
        setup_logging()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert get_logger().name == "briefgate"


class TestLogContext:
    """Test get_log_context helper."""

    def test_drops_none_values(self):
        assert get_log_context(client_id="203.0.113.7", operation="brief") == {
            "client_id": "203.0.113.7",
            "operation": "brief",
        }

    def test_includes_extra_fields(self):
        context = get_log_context(request_id="r", code="DAILY_LIMIT", duration_ms=3.2)
        assert context == {"request_id": "r", "code": "DAILY_LIMIT", "duration_ms": 3.2}

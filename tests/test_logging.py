"""
Unit tests for logging utilities.

Tests verify:
- Logging setup and configuration
- Function call decorator behavior
- JSON formatting and correlation IDs
"""

import json
import logging

import pytest

from folderpush.utils.logging import (
    JSONFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_function_call,
    set_correlation_id,
    setup_logging,
)


def test_setup_logging_configures_root_logger() -> None:
    """Test that setup_logging properly configures the root logger."""
    setup_logging(level="DEBUG")
    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG


def test_setup_logging_json_output(monkeypatch) -> None:
    """Test that LOG_FORMAT=json installs the JSON formatter."""
    monkeypatch.setenv("LOG_FORMAT", "json")
    setup_logging(level="INFO")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, JSONFormatter)

    monkeypatch.delenv("LOG_FORMAT")
    setup_logging(level="INFO")


def test_get_logger_returns_logger_instance() -> None:
    """Test that get_logger returns a valid logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test_module"


def test_log_function_call_decorator_logs_entry_and_exit(caplog) -> None:
    """Test that log_function_call decorator logs function entry and exit."""

    @log_function_call
    def sample_function(x: int, y: int) -> int:
        """Sample function for testing decorator."""
        return x + y

    with caplog.at_level(logging.DEBUG):
        result = sample_function(2, 3)

    assert result == 5
    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("ENTER sample_function(x=2, y=3)") for message in messages)
    assert any(message.startswith("EXIT sample_function -> 5") for message in messages)


def test_log_function_call_decorator_handles_exceptions(caplog) -> None:
    """Test that log_function_call decorator logs and re-raises exceptions."""

    @log_function_call
    def failing_function() -> None:
        """Function that raises an exception."""
        raise ValueError("Test exception")

    with pytest.raises(ValueError, match="Test exception"):
        failing_function()

    [error_record] = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert error_record.exc_info is not None
    assert error_record.error_type == "ValueError"


def test_json_formatter_includes_extra_and_correlation_id() -> None:
    """Test that the JSON formatter emits extras and the correlation ID."""
    set_correlation_id("corr-42")
    record = logging.LogRecord("folderpush.test", logging.INFO, __file__, 1, "Uploaded %s", ("a.js",), None)
    record.category = "STYLE_SCRIPT"

    output = json.loads(JSONFormatter().format(record))

    assert output["message"] == "Uploaded a.js"
    assert output["level"] == "INFO"
    assert output["correlation_id"] == "corr-42"
    assert output["extra"] == {"category": "STYLE_SCRIPT"}
    clear_correlation_id()


def test_correlation_id_generated_when_unset() -> None:
    """Test that a correlation ID is generated on first use."""
    clear_correlation_id()
    first = get_correlation_id()
    assert first
    assert get_correlation_id() == first

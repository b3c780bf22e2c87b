"""Unit tests for structured logging."""
# ruff: noqa: ARG002  # Fixtures used for setup side effects

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from geargrab.core.logging import (
    LogContext,
    add_environment_info,
    bind_contextvars,
    clear_contextvars,
    drop_color_message_key,
    get_logger,
    log_exception,
    log_external_call,
    log_request_end,
    mask_email,
    redact_candidate_fields,
    setup_logging,
    unbind_contextvars,
)


@pytest.fixture
def mock_settings():
    """Patch the settings seen by the logging module."""
    with patch("geargrab.core.logging.get_settings") as get_settings:
        settings = MagicMock()
        settings.ENVIRONMENT = "test"
        settings.log_level = "INFO"
        settings.is_production = False
        get_settings.return_value = settings
        yield settings


class TestProcessors:
    """Tests for custom structlog processors."""

    def test_adds_environment(self, mock_settings):
        """Test environment is added to every entry."""
        mock_settings.ENVIRONMENT = "staging"
        result = add_environment_info(None, "info", {"event": "x"})
        assert result["environment"] == "staging"

    def test_redacts_candidate_fields(self):
        """Test identifiers passed as fields are masked."""
        result = redact_candidate_fields(
            None,
            "info",
            {"event": "x", "ssn": "123456789", "password": "hunter2", "record_id": "r1"},
        )
        assert result["ssn"] == "[REDACTED]"
        assert result["password"] == "[REDACTED]"
        assert result["record_id"] == "r1"

    def test_masks_email_fields(self):
        result = redact_candidate_fields(None, "info", {"event": "x", "email": "jane@example.com"})
        assert result["email"] == "j***@example.com"

    def test_mask_email_without_address(self):
        assert mask_email("not-an-email") == "[REDACTED]"

    def test_drops_color_message(self):
        result = drop_color_message_key(None, "info", {"event": "x", "color_message": "c"})
        assert result == {"event": "x"}


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_custom_level(self, mock_settings):
        """Test logging setup with custom log level."""
        setup_logging(log_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_quiet_third_party_loggers(self, mock_settings):
        setup_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_output_redacts(self, mock_settings, capsys):
        """Test JSON lines are emitted with identifiers masked."""
        setup_logging(log_level="INFO", json_format=True)
        get_logger("test").info("candidate_seen", ssn="123456789", email="a@example.com")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        assert '"event": "candidate_seen"' in line
        assert "123456789" not in line
        assert '"ssn": "[REDACTED]"' in line
        assert "a***@example.com" in line


class TestContext:
    """Tests for log context helpers."""

    def test_log_context_binds_values(self):
        clear_contextvars()
        with LogContext(record_id="r1"):
            assert structlog.contextvars.get_contextvars()["record_id"] == "r1"
        assert "record_id" not in structlog.contextvars.get_contextvars()

    def test_bind_unbind_contextvars(self):
        clear_contextvars()
        bind_contextvars(request_id="abc")
        assert structlog.contextvars.get_contextvars() == {"request_id": "abc"}
        unbind_contextvars("request_id")
        assert structlog.contextvars.get_contextvars() == {}


class TestLogHelpers:
    """Tests for logging helper functions."""

    @pytest.fixture
    def mock_logger(self):
        """Create mock logger."""
        return MagicMock()

    def test_log_request_end(self, mock_logger):
        log_request_end(mock_logger, "POST", "/v1/registrations", 202, 12.3456)

        args, kwargs = mock_logger.info.call_args
        assert args[0] == "request_completed"
        assert kwargs["http_status"] == 202
        assert kwargs["duration_ms"] == 12.35

    def test_log_exception(self, mock_logger):
        log_exception(mock_logger, ValueError("bad"), stage="workflow")

        args, kwargs = mock_logger.exception.call_args
        assert kwargs["error_type"] == "ValueError"
        assert kwargs["stage"] == "workflow"

    def test_log_external_call_failure(self, mock_logger):
        """Test failed calls are logged as warnings."""
        log_external_call(mock_logger, "checkr", "GET /reports/1", 5.0, success=False)

        mock_logger.warning.assert_called_once()
        mock_logger.info.assert_not_called()

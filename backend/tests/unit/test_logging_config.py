"""Tests for centralized logging configuration."""

import logging

import pytest
from pydantic import ValidationError

from logging_config import RedactSecretsFilter, redact, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_root_logger_level_from_settings(self, monkeypatch):
        """LOG_LEVEL setting should control root logger level."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        from config import Settings
        test_settings = Settings()
        monkeypatch.setattr("logging_config.settings", test_settings)

        setup_logging()

        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_loggers_suppressed(self, monkeypatch):
        """SQLAlchemy and provider SDK loggers should be set to WARNING."""
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        from config import Settings
        monkeypatch.setattr("logging_config.settings", Settings())

        setup_logging()

        for name in ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "httpcore", "urllib3", "plaid", "snaptrade_client"):
            assert logging.getLogger(name).level == logging.WARNING, (
                f"{name} logger not suppressed"
            )

    def test_handlers_and_access_log_redact(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        from config import Settings
        monkeypatch.setattr("logging_config.settings", Settings())

        setup_logging()
        setup_logging()

        for handler in logging.getLogger().handlers:
            assert any(isinstance(f, RedactSecretsFilter) for f in handler.filters)
        access_filters = [f for f in logging.getLogger("uvicorn.access").filters if isinstance(f, RedactSecretsFilter)]
        assert len(access_filters) == 1

    def test_invalid_log_level_rejected(self, monkeypatch):
        """Invalid LOG_LEVEL values should raise a validation error."""
        monkeypatch.setenv("LOG_LEVEL", "VERBOS")
        from config import Settings
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            Settings()

    def test_log_level_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        from config import Settings
        assert Settings().LOG_LEVEL == "DEBUG"

    def test_retention_months_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("DAILY_RETENTION_MONTHS", "0")
        from config import Settings
        with pytest.raises(ValidationError, match="retention window"):
            Settings()


class TestRedaction:
    def test_masks_provider_tokens(self):
        message = "Item item_chase token access-sandbox-8ab976e2-8c8d-4b2b-9c3a-1f2e3d4c5b6a rejected"
        assert redact(message) == "Item item_chase token access-sandbox-*** rejected"
        assert redact("exchanged public-production-0f1e2d3c") == "exchanged public-production-***"

    def test_masks_cron_secret_query_param(self):
        line = '127.0.0.1:5000 - "POST /api/cron/daily-sync?secret=s3cr3t&dry_run=true HTTP/1.1" 200'
        assert redact(line) == '127.0.0.1:5000 - "POST /api/cron/daily-sync?secret=***&dry_run=true HTTP/1.1" 200'

    def test_leaves_plain_messages_alone(self):
        assert redact("Item item_chase: 2 page(s), 5 added") == "Item item_chase: 2 page(s), 5 added"

    def test_filter_rewrites_formatted_record(self):
        record = logging.LogRecord(
            "uvicorn.access", logging.INFO, __file__, 1,
            '%s - "%s %s HTTP/%s" %d',
            ("127.0.0.1:5000", "POST", "/api/cron/retention?secret=abc", "1.1", 200),
            None,
        )

        assert RedactSecretsFilter().filter(record) is True
        assert record.getMessage() == '127.0.0.1:5000 - "POST /api/cron/retention?secret=*** HTTP/1.1" 200'

    def test_filter_keeps_args_without_secrets(self):
        record = logging.LogRecord("services.batch_service", logging.INFO, __file__, 1, "Item %s synced", ("item_a",), None)

        RedactSecretsFilter().filter(record)

        assert record.args == ("item_a",)

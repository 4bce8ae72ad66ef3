"""
Unit tests for configuration and logging setup.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from eavdb.config import SQL_LOGGER_NAME, Settings, setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("EAV_DATABASE_PATH", "EAV_ATTRIBUTE_TYPE_POLICY", "EAV_TRACE_SQL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.database_path == "eav.db"
        assert settings.wal_mode is True
        assert settings.attribute_type_policy == "warn"
        assert settings.trace_sql is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EAV_DATABASE_PATH", "/tmp/campus.db")
        monkeypatch.setenv("EAV_ATTRIBUTE_TYPE_POLICY", "strict")
        monkeypatch.setenv("EAV_TRACE_SQL", "true")
        monkeypatch.setenv("EAV_BUSY_TIMEOUT_MS", "250")

        settings = Settings()

        assert settings.database_path == "/tmp/campus.db"
        assert settings.attribute_type_policy == "strict"
        assert settings.trace_sql is True
        assert settings.busy_timeout_ms == 250

    def test_invalid_policy(self):
        with pytest.raises(ValidationError):
            Settings(attribute_type_policy="lenient")


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        sql_level = logging.getLogger(SQL_LOGGER_NAME).level
        yield
        root.handlers = handlers
        root.setLevel(level)
        logging.getLogger(SQL_LOGGER_NAME).setLevel(sql_level)

    def test_sets_level(self):
        setup_logging(Settings(log_level="DEBUG"))
        assert logging.getLogger().level == logging.DEBUG

    def test_sql_logger_quiet_without_tracing(self):
        setup_logging(Settings(log_level="DEBUG", trace_sql=False))
        assert logging.getLogger(SQL_LOGGER_NAME).level == logging.WARNING

    def test_json_format(self):
        setup_logging(Settings(log_format="json"))
        formatter = logging.getLogger().handlers[0].formatter
        record = logging.LogRecord("eavdb", logging.INFO, __file__, 1, "hello", None, None)
        record.entity_id = 7

        payload = json.loads(formatter.format(record))
        assert payload["message"] == "hello"
        assert payload["entity_id"] == 7

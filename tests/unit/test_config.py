"""
Unit tests for configuration and logging setup.
"""

import logging

import json_log_formatter
import pytest

from authz.docperm.config import EngineConfig, ObservabilityConfig
from authz.docperm.observability import setup_logging


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.id_field == "_id"
        assert config.defaults_for("read") == frozenset()
        assert config.array_set_checks_array_component is True
        assert config.observability == ObservabilityConfig("INFO", "json")

    def test_from_env(self, monkeypatch):
        """Settings are read from the environment."""
        monkeypatch.setenv("DOCPERM_ID_FIELD", "id")
        monkeypatch.setenv("DOCPERM_DEFAULT_READ", "public, audit,")
        monkeypatch.setenv("DOCPERM_ARRAY_SET_CHECKS_ARRAY_COMPONENT", "False")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FORMAT", "text")
        monkeypatch.delenv("DOCPERM_DEFAULT_WRITE", raising=False)

        config = EngineConfig.from_env()

        assert config.id_field == "id"
        assert config.defaults_for("read") == {"public", "audit"}
        assert config.defaults_for("write") == frozenset()
        assert config.array_set_checks_array_component is False
        assert config.observability.log_level == "DEBUG"
        assert config.observability.log_format == "text"

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "DOCPERM_ID_FIELD",
            "DOCPERM_DEFAULT_READ",
            "DOCPERM_DEFAULT_WRITE",
            "DOCPERM_ARRAY_SET_CHECKS_ARRAY_COMPONENT",
            "LOG_LEVEL",
            "LOG_FORMAT",
        ):
            monkeypatch.delenv(name, raising=False)

        assert EngineConfig.from_env() == EngineConfig()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            EngineConfig.from_env()

    def test_empty_id_field(self):
        with pytest.raises(ValueError, match="DOCPERM_ID_FIELD"):
            EngineConfig(id_field="").validate()

    def test_disabled_array_check_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            EngineConfig(array_set_checks_array_component=False).validate()

        assert "will not check" in caplog.text

    def test_log_config(self, caplog):
        with caplog.at_level(logging.INFO, logger="authz.docperm.config"):
            EngineConfig().log_config()

        assert "Engine configuration loaded" in caplog.text


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(EngineConfig(observability=ObservabilityConfig("DEBUG", "json")))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(EngineConfig(observability=ObservabilityConfig("warning", "text")))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

"""Unit tests for settings, logging setup, errors and package imports."""

import importlib

import pytest

from adaptive_core.config import Settings, get_settings
from adaptive_core.exceptions import AdaptiveError, DialogNotFoundError, DialogStateError, SchemaError
from adaptive_core.logging import LogFormat, LogLevel, configure_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, settings):
        """Test default settings."""
        assert settings.service_name == "adaptive-core"
        assert settings.auto_end_dialog is True
        assert settings.default_result_property == "dialog.result"
        assert settings.max_event_depth == 100
        assert settings.default_operation is None

    def test_environment_override(self, monkeypatch):
        """Test values read from prefixed environment variables."""
        monkeypatch.setenv("ADAPTIVE_MAX_EVENT_DEPTH", "5")
        monkeypatch.setenv("ADAPTIVE_AUTO_END_DIALOG", "false")
        monkeypatch.setenv("ADAPTIVE_DEFAULT_OPERATION", "set")

        settings = Settings(_env_file=None)

        assert settings.max_event_depth == 5
        assert settings.auto_end_dialog is False
        assert settings.default_operation == "set"

    def test_get_settings_cached(self):
        """Test settings are loaded once."""
        assert get_settings() is get_settings()


class TestLogging:
    """Tests for logging configuration."""

    def test_enums(self):
        """Test level and format values."""
        assert LogLevel("DEBUG") == LogLevel.DEBUG
        assert LogFormat("json") == LogFormat.JSON

    @pytest.mark.parametrize("log_format", ["json", "pretty"])
    def test_configure(self, log_format):
        """Test configuring both output formats."""
        configure_logging(level="warning", log_format=log_format)

    def test_invalid_level(self):
        """Test an unknown level is rejected."""
        with pytest.raises(ValueError):
            configure_logging(level="loud")


class TestExceptions:
    """Tests for engine errors."""

    def test_to_dict(self):
        """Test the error dictionary."""
        error = AdaptiveError("Something failed", details={"step": 1})

        assert error.to_dict() == {
            "error": "ADAPTIVE_ERROR",
            "message": "Something failed",
            "details": {"step": 1},
        }

    def test_codes(self):
        """Test subclass error codes."""
        assert SchemaError("bad").code == "SCHEMA_ERROR"
        assert DialogStateError("bad").code == "DIALOG_STATE_ERROR"

        not_found = DialogNotFoundError("missing")
        assert not_found.code == "DIALOG_NOT_FOUND"
        assert not_found.dialog_id == "missing"
        assert isinstance(not_found, AdaptiveError)


class TestPackage:
    """Tests for the package layout."""

    @pytest.mark.parametrize("module", [
        "adaptive_core",
        "adaptive_core.memory",
        "adaptive_core.schema",
        "adaptive_core.entities",
        "adaptive_core.recognizers",
        "adaptive_core.generators",
        "adaptive_core.dialogs",
    ])
    def test_imports(self, module):
        """Test every sub-package imports cleanly."""
        assert importlib.import_module(module) is not None

    def test_entity_properties(self):
        """Test records with a property field keep their computed attributes."""
        from adaptive_core.entities import EntityAssignment, EntityInfo

        info = EntityInfo(name="city", start=3, end=8, property="destination")
        assignment = EntityAssignment(info, property="destination")

        assert info.length == 5
        assert info.property == "destination"
        assert assignment.alternatives == [assignment]
        assert assignment.has_alternatives is False

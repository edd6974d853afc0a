"""Tests for configuration loading."""

import pytest

from cashflow.config import (
    ConfigError,
    get_settings,
    load_backend_settings,
    validate_all_settings,
)


class TestSettings:
    """Tests for configuration loading."""

    def test_defaults(self):
        """Test default application settings."""
        app = get_settings().app
        assert app.namespace == "default-app-id"
        assert app.storage_backend == "sheets"
        assert app.currency_symbol == "₹"
        assert app.advice_region == "India"
        assert app.debug_mode is False

    def test_env_overrides(self, monkeypatch):
        """Test APP_ variables."""
        monkeypatch.setenv("APP_NAMESPACE", "family")
        monkeypatch.setenv("APP_POLL_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("APP_DEBUG_MODE", "true")
        app = get_settings().app
        assert app.namespace == "family"
        assert app.poll_interval_seconds == 2.5
        assert app.debug_mode is True

    def test_sheets_backend_requires_config(self):
        """Test that a missing storage backend is ConfigError."""
        with pytest.raises(ConfigError) as exc_info:
            load_backend_settings()
        assert "GOOGLE_SHEETS_SPREADSHEET_ID" in str(exc_info.value)

    def test_sheets_backend_configured(self, monkeypatch, tmp_path):
        """Test a complete sheets configuration."""
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        assert load_backend_settings().storage_backend == "sheets"

    def test_invalid_backend_name(self, monkeypatch):
        """Test that an unknown backend is ConfigError."""
        monkeypatch.setenv("APP_STORAGE_BACKEND", "firebase")
        with pytest.raises(ConfigError):
            load_backend_settings()

    def test_validate_all_settings(self, memory_env):
        """Test per-service status."""
        status = validate_all_settings()
        assert status["gemini"] is True
        assert status["app"] is True
        assert status["google_sheets"] is False
        assert "google_sheets_error" in status

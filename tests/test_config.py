"""Unit tests for runtime settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from catalog_intake.config import Settings, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Test environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Should use the documented defaults."""
        monkeypatch.delenv("CATALOG_INTAKE_AUTOSAVE_DELAY_SECONDS", raising=False)
        monkeypatch.delenv("CATALOG_INTAKE_LOG_LEVEL", raising=False)
        monkeypatch.delenv("CATALOG_INTAKE_DRAFT_DIR", raising=False)
        settings = Settings(_env_file=None)
        assert settings.autosave_delay_seconds == 0.8
        assert settings.log_level == "INFO"
        assert settings.draft_dir == Path("~/.catalog_intake/drafts")

    def test_env_overrides(self, monkeypatch):
        """Should read prefixed environment variables."""
        monkeypatch.setenv("CATALOG_INTAKE_AUTOSAVE_DELAY_SECONDS", "0.25")
        monkeypatch.setenv("CATALOG_INTAKE_LOG_LEVEL", "debug")
        settings = get_settings()
        assert settings.autosave_delay_seconds == 0.25
        assert settings.log_level == "DEBUG"

    def test_rejects_negative_delay(self, monkeypatch):
        """Should refuse a negative autosave delay."""
        monkeypatch.setenv("CATALOG_INTAKE_AUTOSAVE_DELAY_SECONDS", "-1")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_rejects_unknown_log_level(self, monkeypatch):
        """Should refuse a log level logging does not know."""
        monkeypatch.setenv("CATALOG_INTAKE_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_session_uses_configured_delay(self, monkeypatch, storage, supplier_backend):
        """Should take the autosave delay from settings when none is given."""
        from catalog_intake.session import FormSession

        monkeypatch.setenv("CATALOG_INTAKE_AUTOSAVE_DELAY_SECONDS", "0")
        session = FormSession.for_supplier_intake(supplier_backend, storage)
        assert session.autosave_delay == 0

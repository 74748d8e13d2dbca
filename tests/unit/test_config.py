"""Unit tests for configuration loading.

Tests defaults, environment overrides, .env loading and error handling.
"""

from datetime import date

import pytest

from tuition_ledger.services.config import LedgerSettings, load_settings, local_today

ENV_VARS = ("DATABASE_URL", "LOG_FILE", "LOG_LEVEL", "LEDGER_TIMEZONE", "AUTO_APPROVE_CASH")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove ledger variables; anything load_dotenv sets is undone after the test."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestLoadSettings:
    """Tests for load_settings function."""

    def test_defaults(self, clean_env, tmp_path):
        settings = load_settings(str(tmp_path / "missing.env"))

        assert settings == LedgerSettings()
        assert settings.database_url == "sqlite:///./tuition_ledger.db"
        assert settings.auto_approve_cash is False

    def test_environment_overrides(self, clean_env, tmp_path):
        clean_env.setenv("DATABASE_URL", "sqlite:///./other.db")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LEDGER_TIMEZONE", "America/Mexico_City")
        clean_env.setenv("AUTO_APPROVE_CASH", "yes")

        settings = load_settings(str(tmp_path / "missing.env"))

        assert settings.database_url == "sqlite:///./other.db"
        assert settings.log_level == "DEBUG"
        assert settings.timezone == "America/Mexico_City"
        assert settings.auto_approve_cash is True

    def test_env_file_is_loaded(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DATABASE_URL=sqlite:///./from_file.db\nLOG_FILE=logs/file.log\n")

        settings = load_settings(str(env_file))

        assert settings.database_url == "sqlite:///./from_file.db"
        assert settings.log_file == "logs/file.log"

    def test_environment_wins_over_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DATABASE_URL=sqlite:///./from_file.db\n")
        clean_env.setenv("DATABASE_URL", "sqlite:///./from_env.db")

        assert load_settings(str(env_file)).database_url == "sqlite:///./from_env.db"

    def test_invalid_log_level(self, clean_env, tmp_path):
        clean_env.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            load_settings(str(tmp_path / "missing.env"))

    def test_invalid_boolean(self, clean_env, tmp_path):
        clean_env.setenv("AUTO_APPROVE_CASH", "maybe")
        with pytest.raises(ValueError, match="AUTO_APPROVE_CASH must be a boolean"):
            load_settings(str(tmp_path / "missing.env"))

    def test_unknown_timezone(self, clean_env, tmp_path):
        clean_env.setenv("LEDGER_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="LEDGER_TIMEZONE"):
            load_settings(str(tmp_path / "missing.env"))

    def test_empty_database_url(self, clean_env, tmp_path):
        clean_env.setenv("DATABASE_URL", "")
        with pytest.raises(ValueError, match="DATABASE_URL is empty"):
            load_settings(str(tmp_path / "missing.env"))


class TestLocalToday:
    def test_process_local_date(self):
        assert isinstance(local_today(), date)

    def test_configured_timezone(self):
        assert isinstance(local_today(LedgerSettings(timezone="Asia/Tokyo")), date)

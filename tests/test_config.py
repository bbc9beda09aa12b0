"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from ledger_engine.config import LedgerConfig, Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "PORT", "DEBUG", "LOG_LEVEL", "INVOICE_NUMBER_PREFIX"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr("ledger_engine.config.load_dotenv", lambda: None)

        settings = Settings.from_env()

        assert settings.database_url == "sqlite:///./ledger_engine.db"
        assert settings.port == 8000
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.invoice_number_prefix == "INV"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setattr("ledger_engine.config.load_dotenv", lambda: None)
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@localhost/ledger")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "TRUE")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql")
        assert settings.PORT == 9000
        assert settings.DEBUG is True
        assert settings.log_level == "DEBUG"


class TestLedgerConfig:
    def test_defaults(self):
        config = LedgerConfig()
        assert config.invoice_number_prefix == "INV"
        assert "cash" in config.cash_methods

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError):
            LedgerConfig(invoice_number_prefix="")

    @pytest.mark.parametrize("width", [0, 13])
    def test_width_bounds(self, width):
        with pytest.raises(ValueError):
            LedgerConfig(invoice_number_width=width)

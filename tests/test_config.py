"""
Unit tests for waterrisk/config.py
"""
import logging

import pytest

from waterrisk.config import get_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("DATABASE_URL", "LOG_LEVEL", "WATER_RISK_FETCH_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


class TestGetConfig:

    def test_defaults(self):
        cfg = get_config()
        assert cfg.database_url is None
        assert cfg.log_level == "INFO"
        assert cfg.log_level_value == logging.INFO
        assert cfg.fetch_timeout_seconds == 30.0

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/water")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("WATER_RISK_FETCH_TIMEOUT", "12.5")
        cfg = get_config(require_database=True)
        assert cfg.database_url == "postgresql://u:p@localhost/water"
        assert cfg.log_level_value == logging.DEBUG
        assert cfg.fetch_timeout_seconds == 12.5

    def test_database_required(self):
        with pytest.raises(EnvironmentError, match="DATABASE_URL"):
            get_config(require_database=True)

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(EnvironmentError, match="LOG_LEVEL"):
            get_config()

    @pytest.mark.parametrize("value", ["soon", "0", "-5"])
    def test_bad_timeout(self, monkeypatch, value):
        monkeypatch.setenv("WATER_RISK_FETCH_TIMEOUT", value)
        with pytest.raises(EnvironmentError, match="WATER_RISK_FETCH_TIMEOUT"):
            get_config()

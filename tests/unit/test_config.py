"""
Unit tests for configuration loading.
"""
import json
from decimal import Decimal
from pathlib import Path

import pytest

from config import Config


@pytest.fixture
def clean_env(monkeypatch, temp_dir):
    for name in ("ORDERS_DB_PATH", "ORDERS_API_URL", "ORDERS_API_TOKEN", "ORDERS_API_TIMEOUT",
                 "ORDERS_ROLE", "DEFAULT_TAX_PERCENTAGE", "CURRENCY_SYMBOL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir))
    return monkeypatch


@pytest.mark.unit
class TestConfig:

    def test_defaults(self, clean_env):
        config = Config()
        assert config.db_path.name == "orders.db"
        assert config.api_base_url is None
        assert not config.uses_api
        assert config.currency_symbol == "₹"
        assert config.default_role == "manager"

    def test_environment(self, clean_env, temp_dir):
        clean_env.setenv("ORDERS_DB_PATH", str(temp_dir / "x.db"))
        clean_env.setenv("ORDERS_API_URL", "https://orders.example.com")
        clean_env.setenv("ORDERS_API_TIMEOUT", "7.5")
        clean_env.setenv("DEFAULT_TAX_PERCENTAGE", "5")
        config = Config()
        assert config.db_path == Path(temp_dir / "x.db")
        assert config.uses_api
        assert config.api_timeout == 7.5
        assert config.default_tax_percentage == Decimal("5")

    def test_settings_file_overlay(self, clean_env, temp_dir):
        (temp_dir / "order_settings.json").write_text(json.dumps({
            "_comment": "admin settings",
            "currency_symbol": "Rs ",
            "default_tax_percentage": 2.5,
            "default_role": "sales",
            "unknown_key": 1,
        }))
        config = Config()
        assert config.currency_symbol == "Rs "
        assert config.default_tax_percentage == Decimal("2.5")
        assert config.default_role == "sales"

    def test_environment_beats_settings_file(self, clean_env, temp_dir):
        (temp_dir / "order_settings.json").write_text(json.dumps({"currency_symbol": "Rs "}))
        clean_env.setenv("CURRENCY_SYMBOL", "INR ")
        assert Config().currency_symbol == "INR "

    def test_broken_settings_file(self, clean_env, temp_dir, caplog):
        (temp_dir / "order_settings.json").write_text("{broken")
        config = Config()
        assert config.currency_symbol == "₹"
        assert "Failed to load order_settings.json" in caplog.text

"""
Tests for ledger configuration loading.

Layering: dataclass defaults < YAML file < STOCK_LEDGER_* environment.
"""

import os

import pytest
import yaml

from stock_ledger.config import (
    CONFIG_PATH_ENV,
    ENV_PREFIX,
    EnvironmentOverlay,
    LedgerSettings,
    load_settings,
    settings_from_mapping,
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep the caller's STOCK_LEDGER_* variables out of these tests."""
    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(key)


class TestDefaults:
    """Defaults apply when nothing else is configured."""

    def test_defaults_without_file_or_env(self):
        settings = load_settings()

        assert settings == LedgerSettings()
        assert settings.lock_timeout_ms == 5000
        assert settings.reservation_hold_hours == 24
        assert settings.alert_dedup_minutes == 60
        assert settings.history_max_page_size == 500

    def test_settings_are_frozen(self):
        settings = LedgerSettings()
        with pytest.raises(AttributeError):
            settings.lock_timeout_ms = 1


class TestYamlFile:
    def test_yaml_values_override_defaults(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump({
            "database_url": "postgresql://ledger@localhost/stock",
            "reservation_hold_hours": 48,
            "echo_sql": True,
        }))

        settings = load_settings(path)

        assert settings.database_url == "postgresql://ledger@localhost/stock"
        assert settings.reservation_hold_hours == 48
        assert settings.echo_sql is True
        assert settings.lock_timeout_ms == 5000

    def test_path_taken_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "from_env.yaml"
        path.write_text("alert_dedup_minutes: 15\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        settings = load_settings()

        assert settings.alert_dedup_minutes == 15

    def test_empty_file_yields_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_settings(path) == LedgerSettings()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_non_mapping_top_level_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            load_settings(path)


class TestEnvironmentOverrides:
    def test_env_beats_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "ledger.yaml"
        path.write_text("lock_timeout_ms: 2000\nhistory_max_page_size: 40\n")
        monkeypatch.setenv("STOCK_LEDGER_LOCK_TIMEOUT_MS", "750")

        settings = load_settings(path)

        assert settings.lock_timeout_ms == 750
        assert settings.history_max_page_size == 40

    def test_unset_variables_are_not_overrides(self):
        assert EnvironmentOverlay().model_dump(exclude_none=True) == {}

    def test_unrelated_prefixed_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("STOCK_LEDGER_TEST_DATABASE_URL", "sqlite:///elsewhere.db")

        assert load_settings() == LedgerSettings()

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("yes", True),
        ("false", False), ("0", False), ("off", False),
    ])
    def test_boolean_parsing(self, raw, expected, monkeypatch):
        monkeypatch.setenv("STOCK_LEDGER_ECHO_SQL", raw)
        assert load_settings().echo_sql is expected

    def test_unparseable_boolean_rejected(self, monkeypatch):
        monkeypatch.setenv("STOCK_LEDGER_ECHO_SQL", "maybe")
        with pytest.raises(ValueError, match="echo_sql"):
            load_settings()

    def test_unparseable_integer_rejected(self, monkeypatch):
        monkeypatch.setenv("STOCK_LEDGER_LOCK_TIMEOUT_MS", "soon")
        with pytest.raises(ValueError, match="lock_timeout_ms"):
            load_settings()

    def test_out_of_range_env_value_rejected(self, monkeypatch):
        monkeypatch.setenv("STOCK_LEDGER_LOCK_TIMEOUT_MS", "0")
        with pytest.raises(ValueError, match="lock_timeout_ms must be positive"):
            load_settings()


class TestValidation:
    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="reservation_hold_days"):
            settings_from_mapping({"reservation_hold_days": 2})

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(ValueError):
            settings_from_mapping({"lock_timeout_ms": True})

    def test_yaml_string_is_not_an_integer(self):
        with pytest.raises(ValueError, match="lock_timeout_ms"):
            settings_from_mapping({"lock_timeout_ms": "5000"})

    @pytest.mark.parametrize("overrides", [
        {"database_url": ""},
        {"lock_timeout_ms": 0},
        {"reservation_hold_hours": 0},
        {"alert_dedup_minutes": -1},
        {"default_reorder_level": -5},
        {"history_max_page_size": 0},
    ])
    def test_out_of_range_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            LedgerSettings(**overrides)

    def test_overlay_keeps_base_values(self):
        base = LedgerSettings(lock_timeout_ms=1234)
        settings = settings_from_mapping({"history_max_page_size": 50}, base)

        assert settings.lock_timeout_ms == 1234
        assert settings.history_max_page_size == 50

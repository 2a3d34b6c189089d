"""
Ledger configuration (``stock_ledger.config``).

Responsibility
--------------
Builds the single ``LedgerSettings`` object that every component receives.
Values come from three layers, later layers winning:

1. Dataclass defaults.
2. An optional YAML file (``path`` argument, or ``STOCK_LEDGER_CONFIG``).
3. ``STOCK_LEDGER_<FIELD>`` environment variables, read by pydantic-settings.

Failure modes
-------------
* Missing YAML file named explicitly  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrongly typed or out-of-range values  -> ``ValueError``
  (pydantic's ``ValidationError`` is a ``ValueError``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "STOCK_LEDGER_"
CONFIG_PATH_ENV = "STOCK_LEDGER_CONFIG"


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for the ledger, its engine and its read side."""

    database_url: str = "sqlite:///./stock_ledger.db"
    echo_sql: bool = False
    lock_timeout_ms: int = 5000
    reservation_hold_hours: int = 24
    alert_dedup_minutes: int = 60
    default_reorder_level: int = 50
    default_reorder_quantity: int = 500
    history_max_page_size: int = 500

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.lock_timeout_ms <= 0:
            raise ValueError("lock_timeout_ms must be positive")
        if self.reservation_hold_hours <= 0:
            raise ValueError("reservation_hold_hours must be positive")
        if self.alert_dedup_minutes < 0:
            raise ValueError("alert_dedup_minutes must not be negative")
        if self.default_reorder_level < 0 or self.default_reorder_quantity < 0:
            raise ValueError("default reorder values must not be negative")
        if self.history_max_page_size < 1:
            raise ValueError("history_max_page_size must be at least 1")


class SettingsOverlay(BaseModel):
    """A partial LedgerSettings read from YAML.  None means "not set"."""

    model_config = ConfigDict(extra="forbid", strict=True)

    database_url: str | None = None
    echo_sql: bool | None = None
    lock_timeout_ms: int | None = None
    reservation_hold_hours: int | None = None
    alert_dedup_minutes: int | None = None
    default_reorder_level: int | None = None
    default_reorder_quantity: int | None = None
    history_max_page_size: int | None = None

    def apply_to(self, base: LedgerSettings) -> LedgerSettings:
        return replace(base, **self.model_dump(exclude_none=True))


class EnvironmentOverlay(BaseSettings, SettingsOverlay):
    """The same fields taken from ``STOCK_LEDGER_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore", strict=False)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def settings_from_mapping(
    data: Mapping[str, Any],
    base: LedgerSettings | None = None,
) -> LedgerSettings:
    """Overlay ``data`` onto ``base`` (or defaults), rejecting unknown keys."""
    return SettingsOverlay.model_validate(dict(data)).apply_to(base or LedgerSettings())


def load_settings(path: str | Path | None = None) -> LedgerSettings:
    """
    Build LedgerSettings from defaults, an optional YAML file and env vars.

    Args:
        path: YAML file to read. Falls back to ``$STOCK_LEDGER_CONFIG``.
    """
    settings = LedgerSettings()

    config_path = path if path is not None else os.environ.get(CONFIG_PATH_ENV)
    if config_path:
        settings = settings_from_mapping(load_yaml_file(Path(config_path)), settings)

    return EnvironmentOverlay().apply_to(settings)

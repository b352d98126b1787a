"""Configuration loading — merges settings.toml and .env."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path

from dotenv import load_dotenv

from tradeframe.shell.exchange import DEFAULT_KEY, ExchangeHours


PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

_TRUE = ("1", "true", "yes", "on")


@dataclass
class FrameworkConfig:
    debug_mode: bool = False   # trace every stage of every tick


@dataclass
class BrokerageConfig:
    account_type: str = "margin"   # "margin" or "cash"


@dataclass
class ReplayConfig:
    volatility_window: int = 20   # bars in the rolling close-to-close volatility


@dataclass
class ExchangeHoursConfig:
    """One market-hours entry. Empty open/close means always open."""
    timezone: str = "UTC"
    open: str = ""
    close: str = ""
    trading_days: list[int] = field(default_factory=lambda: [0, 1, 2, 3, 4])

    @property
    def always_open(self) -> bool:
        return not self.open or not self.close

    def to_hours(self) -> ExchangeHours:
        if self.always_open:
            return ExchangeHours.always_open(self.timezone)
        return ExchangeHours(
            timezone=self.timezone,
            open=time.fromisoformat(self.open),
            close=time.fromisoformat(self.close),
            trading_days=frozenset(self.trading_days),
        )


@dataclass
class Config:
    log_level: str = "INFO"
    framework: FrameworkConfig = field(default_factory=FrameworkConfig)
    brokerage: BrokerageConfig = field(default_factory=BrokerageConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    market_hours: dict[str, ExchangeHoursConfig] = field(
        default_factory=lambda: {DEFAULT_KEY: ExchangeHoursConfig()}
    )

    def is_cash_account(self) -> bool:
        return self.brokerage.account_type == "cash"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from a TOML file and environment variables."""
    load_dotenv(PROJECT_ROOT / ".env")

    config = Config()

    settings_path = path or CONFIG_DIR / "settings.toml"
    if settings_path.exists():
        with open(settings_path, "rb") as f:
            settings = tomllib.load(f)

        general = settings.get("general", {})
        config.log_level = general.get("log_level", config.log_level)

        framework = settings.get("framework", {})
        config.framework.debug_mode = framework.get("debug_mode", config.framework.debug_mode)

        brokerage = settings.get("brokerage", {})
        config.brokerage.account_type = brokerage.get("account_type", config.brokerage.account_type)

        replay = settings.get("replay", {})
        config.replay.volatility_window = replay.get("volatility_window", config.replay.volatility_window)

        hours = settings.get("market_hours", {})
        for key, entry in hours.items():
            current = config.market_hours.get(key, ExchangeHoursConfig())
            config.market_hours[key] = ExchangeHoursConfig(
                timezone=entry.get("timezone", current.timezone),
                open=entry.get("open", current.open),
                close=entry.get("close", current.close),
                trading_days=entry.get("trading_days", current.trading_days),
            )

    # Environment overrides
    if os.getenv("FRAMEWORK_DEBUG"):
        config.framework.debug_mode = os.getenv("FRAMEWORK_DEBUG", "").strip().lower() in _TRUE
    config.brokerage.account_type = os.getenv("ACCOUNT_TYPE", config.brokerage.account_type).lower()
    config.log_level = os.getenv("LOG_LEVEL", config.log_level)

    _validate_config(config)

    return config


def _validate_config(config: Config) -> None:
    """Validate config values are within sane ranges."""
    from zoneinfo import ZoneInfo

    errors = []

    if config.brokerage.account_type not in ("margin", "cash"):
        errors.append(f"account_type must be 'margin' or 'cash', got '{config.brokerage.account_type}'")
    if config.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"Invalid log_level: '{config.log_level}'")
    if config.replay.volatility_window < 2:
        errors.append(f"replay.volatility_window must be >= 2, got {config.replay.volatility_window}")

    for key, entry in config.market_hours.items():
        try:
            ZoneInfo(entry.timezone)
        except (KeyError, ValueError):
            errors.append(f"market_hours.{key}: invalid timezone '{entry.timezone}'")
        if bool(entry.open) != bool(entry.close):
            errors.append(f"market_hours.{key}: open and close must both be set or both empty")
        elif not entry.always_open:
            try:
                if time.fromisoformat(entry.open) >= time.fromisoformat(entry.close):
                    errors.append(f"market_hours.{key}: open ({entry.open}) must be before close ({entry.close})")
            except ValueError:
                errors.append(f"market_hours.{key}: open/close must be HH:MM, got '{entry.open}'/'{entry.close}'")
        if not entry.trading_days or any(d not in range(7) for d in entry.trading_days):
            errors.append(f"market_hours.{key}: trading_days must be weekday numbers 0-6")

    if errors:
        raise ValueError("Config validation failed:\n  " + "\n  ".join(errors))

"""Exchange hours: market-time close computation and the hours database."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

import pytest

from tradeframe.shell.config import ExchangeHoursConfig
from tradeframe.shell.errors import UnknownSymbolError
from tradeframe.shell.exchange import ExchangeHours, MarketHoursDatabase

NYSE = ExchangeHours(timezone="America/New_York", open=time(9, 30), close=time(16, 0))


def test_always_open_adds_period():
    start = datetime(2024, 1, 6, 3, 0, tzinfo=timezone.utc)  # Saturday
    hours = ExchangeHours.always_open()
    assert hours.is_always_open
    assert hours.is_open(start)
    assert hours.close_time(start, timedelta(hours=5)) == start + timedelta(hours=5)


def test_session_is_open():
    assert NYSE.is_open(datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc))       # 10:00 ET Tue
    assert not NYSE.is_open(datetime(2024, 1, 2, 22, 0, tzinfo=timezone.utc))   # 17:00 ET Tue
    assert not NYSE.is_open(datetime(2024, 1, 6, 15, 0, tzinfo=timezone.utc))   # Saturday


def test_close_time_waits_for_open():
    start = datetime(2024, 1, 2, 13, 0, tzinfo=timezone.utc)  # 08:00 ET
    close = NYSE.close_time(start, timedelta(minutes=30))
    assert close == datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)  # 10:00 ET


def test_close_time_rolls_over_weekend():
    start = datetime(2024, 1, 5, 20, 0, tzinfo=timezone.utc)  # Friday 15:00 ET
    close = NYSE.close_time(start, timedelta(hours=2))
    # One hour on Friday, the other after Monday's open
    assert close == datetime(2024, 1, 8, 15, 30, tzinfo=timezone.utc)


def test_database_falls_back_to_default():
    db = MarketHoursDatabase(default=ExchangeHours.always_open())
    db.register("SPY", NYSE)
    assert db.get_exchange_hours("SPY") is NYSE
    assert db.get_exchange_hours("BTCUSD").is_always_open


def test_database_without_default_rejects_unknown_symbol():
    db = MarketHoursDatabase()
    with pytest.raises(UnknownSymbolError):
        db.get_exchange_hours("SPY")


def test_database_from_config():
    db = MarketHoursDatabase.from_config({
        "default": ExchangeHoursConfig(),
        "SPY": ExchangeHoursConfig(timezone="America/New_York", open="09:30", close="16:00"),
    })
    assert len(db) == 1
    assert db.get_exchange_hours("SPY") == NYSE
    assert db.get_exchange_hours("AAPL").is_always_open

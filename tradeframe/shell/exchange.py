"""Exchange hours and the market-hours database used to resolve insight close times."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Optional
from zoneinfo import ZoneInfo

import structlog

from tradeframe.shell.errors import UnknownSymbolError

if TYPE_CHECKING:
    from tradeframe.shell.config import ExchangeHoursConfig

log = structlog.get_logger()

DEFAULT_KEY = "default"
WEEKDAYS = frozenset(range(5))
_MAX_DAYS_SCANNED = 3660


@dataclass(frozen=True)
class ExchangeHours:
    """A single regular session per trading day, or always open when open/close are unset."""

    timezone: str = "UTC"
    open: Optional[time] = None
    close: Optional[time] = None
    trading_days: frozenset[int] = WEEKDAYS

    @classmethod
    def always_open(cls, tz: str = "UTC") -> ExchangeHours:
        return cls(timezone=tz)

    @property
    def is_always_open(self) -> bool:
        return self.open is None or self.close is None

    def is_open(self, when_utc: datetime) -> bool:
        if self.is_always_open:
            return True
        local = when_utc.astimezone(ZoneInfo(self.timezone))
        if local.weekday() not in self.trading_days:
            return False
        return self.open <= local.time() < self.close

    def close_time(self, start_utc: datetime, period: timedelta) -> datetime:
        """Advance ``period`` from ``start_utc`` counting only market-open time."""
        if self.is_always_open or period <= timedelta(0):
            return start_utc + period

        tz = ZoneInfo(self.timezone)
        cursor = start_utc.astimezone(tz)
        remaining = period

        for _ in range(_MAX_DAYS_SCANNED):
            day = cursor.date()
            session_open = datetime.combine(day, self.open, tzinfo=tz)
            session_close = datetime.combine(day, self.close, tzinfo=tz)

            if day.weekday() not in self.trading_days or cursor >= session_close:
                cursor = datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz)
                continue
            if cursor < session_open:
                cursor = session_open

            available = session_close - cursor
            if remaining <= available:
                return (cursor + remaining).astimezone(timezone.utc)
            remaining -= available
            cursor = session_close

        raise ValueError(f"No trading session found within {_MAX_DAYS_SCANNED} days of {start_utc}")


class MarketHoursDatabase:
    """Exchange hours per symbol with an optional fallback entry."""

    def __init__(self, default: ExchangeHours | None = None) -> None:
        self._default = default
        self._hours: dict[str, ExchangeHours] = {}

    @classmethod
    def from_config(cls, entries: dict[str, ExchangeHoursConfig]) -> MarketHoursDatabase:
        default_entry = entries.get(DEFAULT_KEY)
        database = cls(default_entry.to_hours() if default_entry else None)
        for symbol, entry in entries.items():
            if symbol == DEFAULT_KEY:
                continue
            database.register(symbol, entry.to_hours())
        log.debug("market_hours.loaded", symbols=len(database), has_default=database._default is not None)
        return database

    def register(self, symbol: str, hours: ExchangeHours) -> None:
        self._hours[symbol] = hours

    def get_exchange_hours(self, symbol: str) -> ExchangeHours:
        hours = self._hours.get(symbol, self._default)
        if hours is None:
            raise UnknownSymbolError(symbol, "market hours database")
        return hours

    def __len__(self) -> int:
        return len(self._hours)

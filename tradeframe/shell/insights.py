"""Insight stamping and the insights-generated notification.

Alpha models only decide symbol, type, direction and period. Everything
else an insight must carry before it leaves the controller is filled in
here, against the controller's clock and the values known at that moment.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Callable, Iterable

import structlog

from tradeframe.shell.contract import Insight, InsightsGeneratedEvent
from tradeframe.shell.exchange import MarketHoursDatabase
from tradeframe.shell.securities import SecurityValuesProvider

log = structlog.get_logger()

InsightsObserver = Callable[[InsightsGeneratedEvent], None]


def stamp(
    insight: Insight,
    now_utc: datetime,
    values: SecurityValuesProvider,
    alpha_name: str,
    market_hours: MarketHoursDatabase,
) -> Insight:
    """Return a copy of ``insight`` with generated time, reference value, source and close time set.

    Raises UnknownSymbolError if the symbol has no values or no exchange hours.
    """
    stamped = dataclasses.replace(
        insight,
        generated_time_utc=now_utc,
        reference_value=values.get_values(insight.symbol).get(insight.type),
        source_model=insight.source_model or alpha_name,
    )
    stamped.set_period_and_close_time(market_hours.get_exchange_hours(insight.symbol))
    return stamped


class InsightPipeline:
    """Stamps insights and notifies observers, in registration order."""

    def __init__(self, values: SecurityValuesProvider, market_hours: MarketHoursDatabase) -> None:
        self._values = values
        self._market_hours = market_hours
        self._observers: list[InsightsObserver] = []
        self._last_event: InsightsGeneratedEvent | None = None
        self._total_published: int = 0

    @property
    def last_event(self) -> InsightsGeneratedEvent | None:
        return self._last_event

    @property
    def total_published(self) -> int:
        return self._total_published

    def subscribe(self, observer: InsightsObserver) -> None:
        self._observers.append(observer)

    def stamp_all(self, insights: Iterable[Insight], now_utc: datetime, alpha_name: str) -> list[Insight]:
        return [
            stamp(insight, now_utc, self._values, alpha_name, self._market_hours)
            for insight in insights
        ]

    def publish(self, now_utc: datetime, insights: list[Insight]) -> InsightsGeneratedEvent:
        unstamped = [i.symbol for i in insights if not i.is_stamped]
        if unstamped:
            raise ValueError(f"Refusing to publish unstamped insights: {unstamped}")

        event = InsightsGeneratedEvent(now_utc, tuple(insights))
        self._last_event = event
        self._total_published += len(event)
        log.debug("insights.generated", time=now_utc.isoformat(), count=len(event))

        for observer in self._observers:
            observer(event)
        return event

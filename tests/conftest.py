"""Shared fixtures: recording models that log every call into one list."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from tradeframe.shell.config import Config
from tradeframe.shell.contract import (
    AlphaModel, ExecutionModel, Insight, InsightDirection, InsightType,
    PortfolioConstructionModel, PortfolioTarget, RiskManagementModel,
    UniverseSelectionModel,
)
from tradeframe.shell.controller import FrameworkController
from tradeframe.shell.model_set import ModelSet
from tradeframe.shell.securities import SecurityValuesProvider

T0 = datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)

PRICES = {"AAPL": 185.0, "MSFT": 370.0, "SPY": 472.0, "TSLA": 248.0}


class StaticSelection(UniverseSelectionModel):
    """Returns a fixed universe list; due whenever now >= next_refresh."""

    def __init__(self, universes=None, next_refresh: datetime = T0) -> None:
        self.universes = list(universes or [])
        self.next_refresh = next_refresh
        self.calls = 0

    def create_universes(self, algorithm):
        self.calls += 1
        return list(self.universes)

    def get_next_refresh_time_utc(self) -> datetime:
        return self.next_refresh


class RecordingAlpha(AlphaModel):
    def __init__(self, calls: list, insights: list[Insight] | None = None) -> None:
        self._calls = calls
        self.insights = insights or []
        self.changes = []

    def update(self, algorithm, data):
        self._calls.append("alpha.update")
        return [dataclasses.replace(i) for i in self.insights]

    def on_securities_changed(self, algorithm, changes):
        self._calls.append("alpha.on_securities_changed")
        self.changes.append(changes)


class RecordingPortfolio(PortfolioConstructionModel):
    def __init__(self, calls: list, targets: list[PortfolioTarget] | None = None) -> None:
        self._calls = calls
        self.targets = targets or []
        self.received: list[list[Insight]] = []

    def create_targets(self, algorithm, insights):
        self._calls.append("portfolio.create_targets")
        self.received.append(list(insights))
        return list(self.targets)

    def on_securities_changed(self, algorithm, changes):
        self._calls.append("portfolio.on_securities_changed")


class RecordingRisk(RiskManagementModel):
    def __init__(self, calls: list, overrides: list[PortfolioTarget] | None = None) -> None:
        self._calls = calls
        self.overrides = overrides or []
        self.received: list[list[PortfolioTarget]] = []

    def manage_risk(self, algorithm, targets):
        self._calls.append("risk.manage_risk")
        self.received.append(list(targets))
        return list(self.overrides)

    def on_securities_changed(self, algorithm, changes):
        self._calls.append("risk.on_securities_changed")


class RecordingExecution(ExecutionModel):
    def __init__(self, calls: list) -> None:
        self._calls = calls
        self.executed: list[list[PortfolioTarget]] = []

    def execute(self, algorithm, targets):
        self._calls.append("execution.execute")
        self.executed.append(list(targets))

    def on_securities_changed(self, algorithm, changes):
        self._calls.append("execution.on_securities_changed")


def up(symbol: str, **kwargs) -> Insight:
    kwargs.setdefault("period", timedelta(hours=1))
    return Insight(symbol, InsightType.PRICE, InsightDirection.UP, **kwargs)


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def values() -> SecurityValuesProvider:
    provider = SecurityValuesProvider()
    for symbol, price in PRICES.items():
        provider.update(symbol, price=price, volatility=0.02)
    return provider


@pytest.fixture
def models(calls) -> ModelSet:
    return ModelSet(
        universe_selection=StaticSelection(),
        alpha=RecordingAlpha(calls),
        portfolio_construction=RecordingPortfolio(calls),
        risk_management=RecordingRisk(calls),
        execution=RecordingExecution(calls),
    )


@pytest.fixture
def make_controller(values):
    """Build a controller over the given models; post_init is left to the test."""

    def _make(models: ModelSet, debug: bool = False, account_type: str = "margin",
              cls: type[FrameworkController] = FrameworkController) -> FrameworkController:
        config = Config()
        config.framework.debug_mode = debug
        config.brokerage.account_type = account_type
        return cls(config=config, models=models, values=values)

    return _make

"""Null models — the defaults a freshly constructed model set starts with."""

from __future__ import annotations

import structlog

from tradeframe.shell.contract import (
    AlphaModel, ExecutionModel, Insight, PortfolioConstructionModel, PortfolioTarget,
    RiskManagementModel, Slice,
)

log = structlog.get_logger()


class NullAlphaModel(AlphaModel):
    """Emits nothing. A framework algorithm left with this model runs in legacy mode."""

    is_null = True

    def update(self, algorithm, data: Slice) -> list[Insight]:
        return []


class NullPortfolioConstructionModel(PortfolioConstructionModel):
    def create_targets(self, algorithm, insights: list[Insight]) -> list[PortfolioTarget]:
        return []


class NullRiskManagementModel(RiskManagementModel):
    def manage_risk(self, algorithm, targets: list[PortfolioTarget]) -> list[PortfolioTarget]:
        return []


class NullExecutionModel(ExecutionModel):
    """Places no orders; targets are only recorded in the log."""

    def execute(self, algorithm, targets: list[PortfolioTarget]) -> None:
        if targets:
            log.debug("execution.null_skipped", targets=len(targets))

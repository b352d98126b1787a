"""Portfolio targets — construction, risk overrides and the merge handed to execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

import structlog

from tradeframe.shell.contract import (
    Insight, PortfolioConstructionModel, PortfolioTarget, RiskManagementModel,
)

log = structlog.get_logger()


class HoldingsTargets:
    """Desired holding per symbol. Only the controller writes it, during a tick."""

    def __init__(self) -> None:
        self._targets: dict[str, PortfolioTarget] = {}

    def apply(self, targets: Iterable[PortfolioTarget]) -> None:
        for target in targets:
            self._targets[target.symbol] = target

    def get(self, symbol: str) -> PortfolioTarget | None:
        return self._targets.get(symbol)

    def items(self) -> list[tuple[str, PortfolioTarget]]:
        return sorted(self._targets.items())

    def __iter__(self) -> Iterator[PortfolioTarget]:
        return iter(list(self._targets.values()))

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._targets

    def __len__(self) -> int:
        return len(self._targets)


def merge_targets(
    overrides: list[PortfolioTarget],
    targets: list[PortfolioTarget],
) -> list[PortfolioTarget]:
    """Overrides first, then targets; the first entry per symbol wins."""
    merged: list[PortfolioTarget] = []
    seen: set[str] = set()
    for target in [*overrides, *targets]:
        if target.symbol in seen:
            continue
        seen.add(target.symbol)
        merged.append(target)
    return merged


@dataclass
class TargetPipelineResult:
    targets: list[PortfolioTarget] = field(default_factory=list)
    overrides: list[PortfolioTarget] = field(default_factory=list)
    merged: list[PortfolioTarget] = field(default_factory=list)


class TargetPipeline:
    """Portfolio construction followed by risk management, with overrides winning."""

    def run(
        self,
        algorithm,
        insights: list[Insight],
        portfolio_construction: PortfolioConstructionModel,
        risk_management: RiskManagementModel,
        holdings: HoldingsTargets,
    ) -> TargetPipelineResult:
        targets = list(portfolio_construction.create_targets(algorithm, insights))
        holdings.apply(targets)

        overrides = list(risk_management.manage_risk(algorithm, targets))
        holdings.apply(overrides)

        merged = merge_targets(overrides, targets)
        if overrides:
            log.debug(
                "targets.risk_adjusted",
                targets=len(targets),
                overrides=sorted(t.symbol for t in overrides),
                merged=len(merged),
            )
        return TargetPipelineResult(targets=targets, overrides=overrides, merged=merged)

"""Model set — the five pluggable framework models plus the mode they run in.

Written during setup (single writer), read on every tick. Validation runs
once, before trading starts, and decides the mode for the rest of the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from tradeframe.models.null import (
    NullAlphaModel, NullExecutionModel, NullPortfolioConstructionModel, NullRiskManagementModel,
)
from tradeframe.models.selection import ManualUniverseSelectionModel
from tradeframe.shell.contract import (
    AlphaModel, ExecutionModel, PortfolioConstructionModel, RiskManagementModel,
    UniverseSelectionModel,
)
from tradeframe.shell.errors import FrameworkConfigurationError

log = structlog.get_logger()


class FrameworkMode(Enum):
    LEGACY = "legacy"          # framework disabled, models are never driven
    BRIDGE = "bridge"          # framework enabled, insights may also be emitted by hand
    FRAMEWORK = "framework"    # fully automated pipeline


@dataclass
class ModelSet:
    universe_selection: Optional[UniverseSelectionModel] = None
    alpha: AlphaModel = field(default_factory=NullAlphaModel)
    portfolio_construction: PortfolioConstructionModel = field(default_factory=NullPortfolioConstructionModel)
    risk_management: RiskManagementModel = field(default_factory=NullRiskManagementModel)
    execution: ExecutionModel = field(default_factory=NullExecutionModel)
    framework_enabled: bool = True
    bridge_mode: bool = False

    @property
    def mode(self) -> FrameworkMode:
        if not self.framework_enabled:
            return FrameworkMode.LEGACY
        return FrameworkMode.BRIDGE if self.bridge_mode else FrameworkMode.FRAMEWORK

    def validate(self, bridge: bool) -> FrameworkMode:
        """Check the configured models are consistent and settle the mode.

        Raises FrameworkConfigurationError if framework mode has no universe
        selection model.
        """
        self.bridge_mode = bridge

        if self.alpha.is_null and not self.bridge_mode:
            log.info("framework.disabled", reason="null alpha model", alpha=self.alpha.name)
            self.framework_enabled = False

        if self.universe_selection is None:
            if not self.framework_enabled or self.bridge_mode:
                # Needed so securities added by hand during setup still get a universe
                self.universe_selection = ManualUniverseSelectionModel()
            else:
                raise FrameworkConfigurationError(
                    "Framework algorithms must specify a universe selection model "
                    "using the 'universe_selection' property."
                )

        log.info(
            "framework.validated",
            mode=self.mode.value,
            universe_selection=type(self.universe_selection).__name__,
            alpha=self.alpha.name,
            portfolio_construction=type(self.portfolio_construction).__name__,
            risk_management=type(self.risk_management).__name__,
            execution=type(self.execution).__name__,
        )
        return self.mode

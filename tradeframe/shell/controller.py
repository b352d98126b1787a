"""Framework controller — drives the five models through every tick.

Per data slice the order is fixed: universe refresh, alpha, portfolio
construction, risk management, execution. A stage never starts before the
previous one returns. Exceptions raised by a model are not caught here;
they propagate to whatever runs the controller.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

import structlog

from tradeframe.core.logging import tick_context
from tradeframe.shell.config import Config
from tradeframe.shell.contract import (
    AccountType, AlphaModel, ExecutionModel, Insight, PortfolioConstructionModel,
    RiskManagementModel, SecurityChanges, SecurityType, Slice, Universe,
    UniverseSelectionModel,
)
from tradeframe.shell.errors import InvalidOperationError
from tradeframe.shell.exchange import MarketHoursDatabase
from tradeframe.shell.insights import InsightPipeline, InsightsObserver
from tradeframe.shell.model_set import FrameworkMode, ModelSet
from tradeframe.shell.securities import SecurityValuesProvider
from tradeframe.shell.targets import HoldingsTargets, TargetPipeline
from tradeframe.shell.universe import UniverseManager, UniverseRefreshScheduler

log = structlog.get_logger()

LogHandler = Callable[[str], None]

CASH_ACCOUNT_WARNING = (
    "These models are currently unsuitable for Cash Modeled brokerages (e.g. GDAX) and may result "
    "in unexpected trades. To prevent possible user error we've restricted them to Margin trading. "
    "You can select margin account types with account_type = \"margin\" in the [brokerage] settings."
)


class ControllerState(Enum):
    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    RUNNING = "running"


class FrameworkController:
    """Owns the model set, the universes and the holdings targets of one strategy."""

    # Bridge controllers may emit insights by hand, outside the alpha model
    bridge: bool = False

    def __init__(
        self,
        config: Config | None = None,
        models: ModelSet | None = None,
        values: SecurityValuesProvider | None = None,
        market_hours: MarketHoursDatabase | None = None,
    ) -> None:
        self._config = config or Config()
        self.models = models or ModelSet()
        self.debug_mode = self._config.framework.debug_mode
        self.account_type = AccountType(self._config.brokerage.account_type)
        self.securities = values or SecurityValuesProvider()
        self.market_hours = market_hours or MarketHoursDatabase.from_config(self._config.market_hours)
        self.universes = UniverseManager()
        self.holdings = HoldingsTargets()
        self.log_messages: list[str] = []
        self.error_messages: list[str] = []

        self._insights = InsightPipeline(self.securities, self.market_hours)
        self._targets = TargetPipeline()
        self._refresh = UniverseRefreshScheduler()
        self._state = ControllerState.UNVALIDATED
        self._utc_time: datetime | None = None
        # Nesting depth of on_data / on_securities_changed; models may re-enter
        self._tick_depth: int = 0
        self._log_handlers: list[LogHandler] = []

    # --- State ---

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def utc_time(self) -> datetime | None:
        return self._utc_time

    @property
    def framework_enabled(self) -> bool:
        return self.models.framework_enabled

    @property
    def bridge_mode(self) -> bool:
        return self.models.bridge_mode

    @property
    def mode(self) -> FrameworkMode:
        return self.models.mode

    @property
    def insights(self) -> InsightPipeline:
        return self._insights

    @property
    def refresh_scheduler(self) -> UniverseRefreshScheduler:
        return self._refresh

    def set_time(self, now_utc: datetime) -> None:
        if now_utc.tzinfo is None:
            raise ValueError(f"Controller time must be timezone-aware, got {now_utc}")
        self._utc_time = now_utc

    # --- Lifecycle ---

    def post_init(self) -> FrameworkMode:
        """Validate the models and create the initial universes. Runs once, before trading."""
        if self._state != ControllerState.UNVALIDATED:
            raise InvalidOperationError(f"post_init already ran (state={self._state.value})")

        mode = self.models.validate(self.bridge)

        for universe in self.models.universe_selection.create_universes(self):
            self.universes.add(universe)

        if self.debug_mode:
            self._insights.subscribe(self._log_generated_insights)

        if self.framework_enabled and self._config.is_cash_account():
            self.error(CASH_ACCOUNT_WARNING)

        self._state = ControllerState.VALIDATED
        log.info("controller.post_init", mode=mode.value, universes=len(self.universes),
                 debug=self.debug_mode, account_type=self.account_type.value)
        return mode

    def on_data(self, data: Slice, now_utc: datetime) -> None:
        """Run one tick. Only universe refresh happens when the slice is empty."""
        self._require_validated()
        if not self.framework_enabled:
            return

        self.set_time(now_utc)
        self._state = ControllerState.RUNNING
        self._tick_depth += 1
        try:
            with tick_context(now_utc):
                self._run_tick(data, now_utc)
        finally:
            self._tick_depth -= 1

    def _run_tick(self, data: Slice, now_utc: datetime) -> None:
        self._refresh.maybe_refresh(now_utc, self.models.universe_selection, self.universes, self)

        if not data.has_data:
            return

        insights = list(self.models.alpha.update(self, data))
        if insights:
            insights = self._insights.stamp_all(insights, now_utc, self.models.alpha.name)
            self._trace("ALPHA", insights)
            self._insights.publish(now_utc, insights)

        result = self._targets.run(
            self, insights,
            self.models.portfolio_construction,
            self.models.risk_management,
            self.holdings,
        )
        self._trace("PORTFOLIO", result.targets)
        self._trace("RISK", result.overrides)
        # Only worth tracing when risk actually adjusted something
        if result.overrides:
            self._trace("RISK ADJUSTED TARGETS", result.merged)

        self.models.execution.execute(self, result.merged)

    def on_securities_changed(self, changes: SecurityChanges) -> None:
        """Forward instrument-set changes. Execution hears before risk management."""
        self._require_validated()
        if not self.framework_enabled:
            return

        self._state = ControllerState.RUNNING
        if self.debug_mode:
            self.log(f"{self._utc_time}: {changes}")

        self._tick_depth += 1
        try:
            self.models.alpha.on_securities_changed(self, changes)
            self.models.portfolio_construction.on_securities_changed(self, changes)
            self.models.execution.on_securities_changed(self, changes)
            self.models.risk_management.on_securities_changed(self, changes)
        finally:
            self._tick_depth -= 1

    # --- Insights ---

    def emit_insights(self, *insights: Insight) -> list[Insight]:
        """Emit insights by hand. Only bridge algorithms may do this."""
        if not self.bridge_mode:
            raise InvalidOperationError(
                "emit_insights is for backwards compatibility with BridgeFrameworkController. "
                "Framework algorithms can not directly emit insights, "
                "they should be generated by the AlphaModel implementation."
            )
        if self._utc_time is None:
            raise InvalidOperationError("emit_insights called before the controller clock was set")

        stamped = self._insights.stamp_all(insights, self._utc_time, self.models.alpha.name)
        self._insights.publish(self._utc_time, stamped)
        return stamped

    def on_insights_generated(self, observer: InsightsObserver) -> None:
        self._insights.subscribe(observer)

    # --- Setup ---

    def set_universe_selection(self, universe_selection: UniverseSelectionModel) -> None:
        self._set_model("universe_selection", universe_selection)

    def set_alpha(self, alpha: AlphaModel) -> None:
        self._set_model("alpha", alpha)

    def set_portfolio_construction(self, portfolio_construction: PortfolioConstructionModel) -> None:
        self._set_model("portfolio_construction", portfolio_construction)

    def set_execution(self, execution: ExecutionModel) -> None:
        self._set_model("execution", execution)

    def set_risk_management(self, risk_management: RiskManagementModel) -> None:
        self._set_model("risk_management", risk_management)

    def add_security(
        self,
        symbol: str,
        security_type: SecurityType = SecurityType.EQUITY,
        market: str = "usa",
    ) -> Universe:
        """Add a symbol to the protected user-defined universe for its type and market."""
        universe = self.universes.user_defined(security_type, market)
        universe.members.add(symbol)
        log.info("controller.security_added", symbol=symbol, universe=universe.symbol)
        return universe

    # --- Logging ---

    def add_log_handler(self, handler: LogHandler) -> None:
        self._log_handlers.append(handler)

    def log(self, message: str) -> None:
        self.log_messages.append(message)
        log.info("algorithm.log", message=message)
        for handler in self._log_handlers:
            handler(message)

    def error(self, message: str) -> None:
        self.error_messages.append(message)
        log.error("algorithm.error", message=message)
        for handler in self._log_handlers:
            handler(message)

    # --- Internals ---

    def _set_model(self, attr: str, model) -> None:
        if self._tick_depth:
            raise InvalidOperationError(f"Cannot replace {attr} while a tick is running")
        setattr(self.models, attr, model)

    def _require_validated(self) -> None:
        if self._state == ControllerState.UNVALIDATED:
            raise InvalidOperationError("post_init must run before the controller receives data")

    def _trace(self, stage: str, items: Iterable) -> None:
        if not self.debug_mode:
            return
        lines = sorted(str(item) for item in items)
        if lines:
            self.log(f"{self._utc_time}: {stage}: {' | '.join(lines)}")

    def _log_generated_insights(self, event) -> None:
        ordered = sorted(event.insights, key=lambda i: i.symbol)
        self.log(f"{event.time_utc}: {' | '.join(str(i) for i in ordered)}")


class BridgeFrameworkController(FrameworkController):
    """Controller for strategies ported from the pre-framework API.

    The framework stays enabled even with a null alpha model, and insights
    may be emitted by hand with emit_insights().
    """

    bridge = True

"""Replay — drive a framework controller through historical candles.

Feeds one slice per timestamp, keeps the security values the insight
stamper reads up to date, and turns universe membership changes into
SecurityChanges the way a live data feed would.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import pandas as pd
import structlog

from tradeframe.core.logging import setup_logging
from tradeframe.shell.config import Config, load_config
from tradeframe.shell.contract import Bar, Insight, InsightsGeneratedEvent, SecurityChanges, Slice
from tradeframe.shell.controller import ControllerState, FrameworkController
from tradeframe.shell.model_set import ModelSet

log = structlog.get_logger()

REQUIRED_COLUMNS = ("open", "high", "low", "close")


@dataclass
class ReplayResult:
    ticks: int = 0
    empty_ticks: int = 0
    insights: list[Insight] = field(default_factory=list)
    security_changes: list[SecurityChanges] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Ticks: {self.ticks} (empty: {self.empty_ticks}) | "
            f"Insights: {len(self.insights)} | "
            f"Security changes: {len(self.security_changes)}"
        )


def frames_from_csv(path: Path | str) -> dict[str, pd.DataFrame]:
    """Split a long-format CSV (time, symbol, open, high, low, close[, volume]) per symbol."""
    df = pd.read_csv(path, parse_dates=["time"])
    return {
        str(symbol): group.drop(columns=["symbol"]).set_index("time")
        for symbol, group in df.groupby("symbol")
    }


class ReplayRunner:
    """Replays candle data through a controller, one slice per timestamp.

    Successive run() calls continue on the same controller: membership seen
    by the previous run carries over, and each run only collects the insights
    published while it was running.
    """

    def __init__(self, controller: FrameworkController, volatility_window: int = 20) -> None:
        self._controller = controller
        self._volatility_window = volatility_window
        self._members: set[str] = set()
        self._current: ReplayResult | None = None
        controller.on_insights_generated(self._collect_insights)

    @classmethod
    def from_config(cls, controller: FrameworkController, config: Config) -> ReplayRunner:
        return cls(controller, volatility_window=config.replay.volatility_window)

    @property
    def volatility_window(self) -> int:
        return self._volatility_window

    def _collect_insights(self, event: InsightsGeneratedEvent) -> None:
        if self._current is not None:
            self._current.insights.extend(event.insights)

    def _prepare(self, symbol: str, df: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Candles for {symbol} missing columns: {missing}")

        df = df.copy()
        df.index = pd.to_datetime(df.index)
        if df.index.tz is None:
            df.index = df.index.tz_localize("UTC")
        else:
            df.index = df.index.tz_convert("UTC")
        df = df[~df.index.duplicated(keep="last")].sort_index()

        if "volume" not in df.columns:
            df["volume"] = 0.0
        df["volatility"] = df["close"].pct_change().rolling(self._volatility_window).std()
        return df

    def run(self, candle_data: dict[str, pd.DataFrame]) -> ReplayResult:
        """Run the replay.

        Args:
            candle_data: dict of symbol -> DataFrame with OHLCV columns, datetime index

        Returns:
            ReplayResult with tick counts, published insights and securities changes
        """
        controller = self._controller
        if controller.state == ControllerState.UNVALIDATED:
            controller.post_init()

        frames = {symbol: self._prepare(symbol, df) for symbol, df in candle_data.items()}

        all_timestamps = set()
        for df in frames.values():
            all_timestamps.update(df.index.tolist())
        timestamps = sorted(all_timestamps)

        result = ReplayResult()
        self._current = result
        try:
            for ts in timestamps:
                self._step(ts, frames, result)
        finally:
            self._current = None

        log.info("replay.complete", ticks=result.ticks, empty=result.empty_ticks,
                 insights=len(result.insights), changes=len(result.security_changes))
        return result

    def _step(self, ts: pd.Timestamp, frames: dict[str, pd.DataFrame], result: ReplayResult) -> None:
        controller = self._controller
        now_utc: datetime = ts.to_pydatetime()

        # Membership reflects refreshes from earlier ticks, as with a live feed
        current = controller.universes.active_members()
        changes = SecurityChanges.diff(self._members, current)
        self._members = current
        if not changes.is_empty:
            result.security_changes.append(changes)
            controller.set_time(now_utc)
            controller.on_securities_changed(changes)

        # Removals for disposed universes have been forwarded; finish their teardown
        torn_down = controller.universes.remove_disposed()
        if torn_down:
            log.debug("replay.universes_torn_down", time=now_utc.isoformat(), universes=torn_down)

        bars: dict[str, Bar] = {}
        for symbol in sorted(self._members):
            df = frames.get(symbol)
            if df is None or ts not in df.index:
                continue
            row = df.loc[ts]
            volatility = None if pd.isna(row["volatility"]) else float(row["volatility"])
            controller.securities.update(symbol, price=float(row["close"]), volatility=volatility)
            bars[symbol] = Bar(
                symbol=symbol,
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]),
            )

        controller.on_data(Slice(now_utc, bars), now_utc)
        result.ticks += 1
        if not bars:
            result.empty_ticks += 1


def run_replay(
    models: ModelSet,
    csv_path: Path | str,
    config: Config | None = None,
    controller_cls: type[FrameworkController] = FrameworkController,
) -> ReplayResult:
    """Load config, set up logging and replay a long-format candle CSV through the models."""
    config = config or load_config()
    setup_logging(config.log_level)

    controller = controller_cls(config=config, models=models)
    runner = ReplayRunner.from_config(controller, config)
    log.info("replay.starting", csv=str(csv_path), volatility_window=runner.volatility_window,
             debug=config.framework.debug_mode)
    return runner.run(frames_from_csv(csv_path))

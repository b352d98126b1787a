"""Universe registry and the scheduled refresh that keeps it in line with selection.

Removal is two-phase: a universe missing from the selection output is first
marked disposed (the data layer tears down its subscriptions), and only
removed if it is still missing on a later refresh. The user-defined universe
for each security type/market pair is never removed this way.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

import structlog

from tradeframe.shell.contract import (
    SecurityType, Universe, UniverseConfig, UniverseSelectionModel,
    user_defined_universe_symbol,
)

log = structlog.get_logger()


class UniverseManager:
    """Active universes keyed by symbol, in insertion order."""

    def __init__(self) -> None:
        self._universes: dict[str, Universe] = {}

    def add(self, universe: Universe) -> bool:
        """Add unless a universe with the same symbol exists. Returns True if added.

        A newly registered universe starts active, even if the same object was
        disposed and torn down earlier.
        """
        if universe.symbol in self._universes:
            return False
        universe.dispose_requested = False
        self._universes[universe.symbol] = universe
        return True

    def remove(self, symbol: str) -> Universe | None:
        return self._universes.pop(symbol, None)

    def remove_disposed(self) -> list[str]:
        """Drop every universe pending disposal once its teardown is done."""
        removed = [u.symbol for u in self._universes.values() if u.dispose_requested]
        for symbol in removed:
            del self._universes[symbol]
        return removed

    def get(self, symbol: str) -> Universe | None:
        return self._universes.get(symbol)

    def user_defined(self, security_type: SecurityType, market: str) -> Universe:
        """The protected universe for manually added securities, created on first use."""
        symbol = user_defined_universe_symbol(security_type, market)
        universe = self._universes.get(symbol)
        if universe is None:
            universe = Universe(symbol, UniverseConfig(security_type, market))
            self._universes[symbol] = universe
        return universe

    def active_members(self) -> set[str]:
        """Member symbols of every universe not pending disposal."""
        members: set[str] = set()
        for universe in self._universes.values():
            if not universe.dispose_requested:
                members |= universe.members
        return members

    def symbols(self) -> list[str]:
        return list(self._universes)

    def __iter__(self) -> Iterator[Universe]:
        return iter(list(self._universes.values()))

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._universes

    def __len__(self) -> int:
        return len(self._universes)


class UniverseRefreshScheduler:
    """Runs selection when it is due and reconciles the active universes with its output."""

    def __init__(self) -> None:
        self._last_refresh_utc: datetime | None = None
        self._refresh_count: int = 0

    @property
    def last_refresh_utc(self) -> datetime | None:
        return self._last_refresh_utc

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    def is_due(self, now_utc: datetime, selection: UniverseSelectionModel) -> bool:
        if self._last_refresh_utc is not None and now_utc <= self._last_refresh_utc:
            return False
        return now_utc >= selection.get_next_refresh_time_utc()

    def maybe_refresh(
        self,
        now_utc: datetime,
        selection: UniverseSelectionModel,
        universes: UniverseManager,
        algorithm,
    ) -> bool:
        """Refresh if due. Returns True when the diff/add/remove pass ran."""
        if not self.is_due(now_utc, selection):
            return False

        self._last_refresh_utc = now_utc
        self._refresh_count += 1

        desired = {u.symbol: u for u in selection.create_universes(algorithm)}

        disposed: list[str] = []
        removed: list[str] = []
        for universe in universes:
            if universe.symbol in desired:
                continue
            if universe.is_user_defined:
                continue
            if universe.dispose_requested:
                universes.remove(universe.symbol)
                removed.append(universe.symbol)
            else:
                universe.dispose()
                disposed.append(universe.symbol)

        added = [symbol for symbol, universe in desired.items() if universes.add(universe)]

        log.info(
            "universe.refresh",
            time=now_utc.isoformat(),
            desired=len(desired),
            added=added,
            disposed=disposed,
            removed=removed,
            active=len(universes),
        )
        return True

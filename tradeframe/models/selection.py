"""Universe selection models shipped with the framework."""

from __future__ import annotations

from tradeframe.shell.contract import (
    SecurityType, Universe, UniverseConfig, UniverseSelectionModel,
)


class ManualUniverseSelectionModel(UniverseSelectionModel):
    """Trades only the symbols handed to it (or added by hand via add_security).

    Never refreshes. With no symbols it creates no universes and the
    controller's user-defined universes carry everything.
    """

    def __init__(
        self,
        symbols: list[str] | None = None,
        security_type: SecurityType = SecurityType.EQUITY,
        market: str = "usa",
    ) -> None:
        self._symbols = list(dict.fromkeys(symbols or []))
        self._config = UniverseConfig(security_type, market)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def create_universes(self, algorithm) -> list[Universe]:
        if not self._symbols:
            return []
        symbol = f"MANUAL-{self._config.market.upper()}-{self._config.security_type.name}"
        return [Universe(symbol, self._config, members=set(self._symbols))]

"""Security values — the current reference values captured when insights are stamped."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tradeframe.shell.contract import InsightType
from tradeframe.shell.errors import UnknownSymbolError


@dataclass
class SecurityValues:
    symbol: str
    price: Optional[float] = None
    volatility: Optional[float] = None

    def get(self, insight_type: InsightType) -> Optional[float]:
        if insight_type == InsightType.PRICE:
            return self.price
        if insight_type == InsightType.VOLATILITY:
            return self.volatility
        raise ValueError(f"Unsupported insight type: {insight_type}")


class SecurityValuesProvider:
    """Latest known values per symbol. Written by the data layer, read at stamping time."""

    def __init__(self) -> None:
        self._values: dict[str, SecurityValues] = {}

    def update(
        self,
        symbol: str,
        price: float | None = None,
        volatility: float | None = None,
    ) -> SecurityValues:
        values = self._values.setdefault(symbol, SecurityValues(symbol))
        if price is not None:
            values.price = price
        if volatility is not None:
            values.volatility = volatility
        return values

    def get_values(self, symbol: str) -> SecurityValues:
        try:
            return self._values[symbol]
        except KeyError:
            raise UnknownSymbolError(symbol, "security values") from None

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._values

    def __len__(self) -> int:
        return len(self._values)

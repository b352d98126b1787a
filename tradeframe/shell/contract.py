"""IO Contract — types exchanged between the controller and pluggable models.

These types define EXACTLY what the five framework models receive and what
they must return. The controller enforces ordering and stamping; the models
never talk to each other directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Mapping, Optional

if TYPE_CHECKING:
    from tradeframe.shell.exchange import ExchangeHours


# --- Enums ---

class SecurityType(Enum):
    EQUITY = "equity"
    FOREX = "forex"
    CRYPTO = "crypto"
    FUTURE = "future"
    OPTION = "option"
    CFD = "cfd"
    INDEX = "index"


class AccountType(Enum):
    MARGIN = "margin"
    CASH = "cash"


class InsightType(Enum):
    PRICE = "price"
    VOLATILITY = "volatility"


class InsightDirection(Enum):
    DOWN = -1
    FLAT = 0
    UP = 1


# --- Market data ---

@dataclass(frozen=True)
class Bar:
    symbol: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class Slice:
    """All data that arrived for one time step."""

    time: datetime
    bars: Mapping[str, Bar] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return len(self.bars) > 0

    @property
    def symbols(self) -> list[str]:
        return sorted(self.bars)

    def __getitem__(self, symbol: str) -> Bar:
        return self.bars[symbol]

    def __contains__(self, symbol: str) -> bool:
        return symbol in self.bars


# --- Framework types ---

@dataclass
class Insight:
    symbol: str
    type: InsightType
    direction: InsightDirection
    period: Optional[timedelta] = None
    magnitude: Optional[float] = None
    confidence: Optional[float] = None
    weight: Optional[float] = None
    source_model: str = ""
    # Set by the controller when the insight is stamped
    generated_time_utc: Optional[datetime] = None
    close_time_utc: Optional[datetime] = None
    reference_value: Optional[float] = None

    @property
    def is_stamped(self) -> bool:
        return self.generated_time_utc is not None

    def set_period_and_close_time(self, hours: ExchangeHours) -> None:
        """Derive close time from period (in market time), or period from close time."""
        if self.generated_time_utc is None:
            raise ValueError(f"Insight for {self.symbol} has no generated time")
        if self.period is not None:
            self.close_time_utc = hours.close_time(self.generated_time_utc, self.period)
        elif self.close_time_utc is not None:
            self.period = self.close_time_utc - self.generated_time_utc
        else:
            raise ValueError(f"Insight for {self.symbol} needs a period or a close time")

    def __str__(self) -> str:
        return f"{self.symbol}: {self.type.value} {self.direction.name} within {self.period}"


@dataclass(frozen=True)
class PortfolioTarget:
    symbol: str
    quantity: float
    tag: str = ""

    def __str__(self) -> str:
        return f"{self.symbol}: {self.quantity:g}"


@dataclass(frozen=True)
class UniverseConfig:
    security_type: SecurityType
    market: str


def user_defined_universe_symbol(security_type: SecurityType, market: str) -> str:
    """Canonical symbol of the universe holding manually added securities."""
    return f"UNIVERSE-USERDEFINED-{market.upper()}-{security_type.name}"


@dataclass
class Universe:
    symbol: str
    config: UniverseConfig
    members: set[str] = field(default_factory=set)
    dispose_requested: bool = False

    @property
    def security_type(self) -> SecurityType:
        return self.config.security_type

    @property
    def market(self) -> str:
        return self.config.market

    @property
    def is_user_defined(self) -> bool:
        return self.symbol == user_defined_universe_symbol(self.security_type, self.market)

    def dispose(self) -> None:
        """Mark for removal; member subscriptions are torn down by the data layer."""
        self.dispose_requested = True


@dataclass(frozen=True)
class SecurityChanges:
    added: frozenset[str] = frozenset()
    removed: frozenset[str] = frozenset()

    @classmethod
    def diff(cls, previous: set[str] | frozenset[str], current: set[str] | frozenset[str]) -> SecurityChanges:
        return cls(added=frozenset(current - previous), removed=frozenset(previous - current))

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed

    def __str__(self) -> str:
        added = ", ".join(sorted(self.added))
        removed = ", ".join(sorted(self.removed))
        return f"SecurityChanges: Added: {added} Removed: {removed}"


@dataclass(frozen=True)
class InsightsGeneratedEvent:
    time_utc: datetime
    insights: tuple[Insight, ...]

    def __iter__(self) -> Iterator[Insight]:
        return iter(self.insights)

    def __len__(self) -> int:
        return len(self.insights)


# --- Model Interfaces ---
# Every hook receives the controller as ``algorithm`` so models can read the
# clock, the universes and the current holdings targets.

NEVER = datetime.max.replace(tzinfo=timezone.utc)


class UniverseSelectionModel:
    """Decides which universes should be active.

    Models MUST implement: create_universes()
    Models MAY override: get_next_refresh_time_utc() (default: never refresh)
    """

    def create_universes(self, algorithm) -> list[Universe]:
        raise NotImplementedError

    def get_next_refresh_time_utc(self) -> datetime:
        return NEVER


class AlphaModel:
    """Turns data into insights.

    Models MUST implement: update()
    Models MAY override: on_securities_changed(), name
    """

    # Capability flag for the no-op sentinel. Subclasses of a null model inherit it.
    is_null: bool = False

    @property
    def name(self) -> str:
        return type(self).__name__

    def update(self, algorithm, data: Slice) -> list[Insight]:
        raise NotImplementedError

    def on_securities_changed(self, algorithm, changes: SecurityChanges) -> None:
        pass


class PortfolioConstructionModel:
    """Turns insights into portfolio targets."""

    def create_targets(self, algorithm, insights: list[Insight]) -> list[PortfolioTarget]:
        raise NotImplementedError

    def on_securities_changed(self, algorithm, changes: SecurityChanges) -> None:
        pass


class RiskManagementModel:
    """Returns override targets for symbols whose risk must be reduced."""

    def manage_risk(self, algorithm, targets: list[PortfolioTarget]) -> list[PortfolioTarget]:
        raise NotImplementedError

    def on_securities_changed(self, algorithm, changes: SecurityChanges) -> None:
        pass


class ExecutionModel:
    """Moves holdings towards the risk-adjusted targets."""

    def execute(self, algorithm, targets: list[PortfolioTarget]) -> None:
        raise NotImplementedError

    def on_securities_changed(self, algorithm, changes: SecurityChanges) -> None:
        pass

"""
In-memory data model for a game session: instruments, market state, account.

These are mutated in place every tick (instruments, market) or on every
trade (account). API-facing views live in schemas/.
"""
from dataclasses import dataclass, field
from typing import Literal

Regime = Literal["Bull", "Bear", "Volatile"]
REGIMES: tuple[str, ...] = ("Bull", "Bear", "Volatile")

MIN_PRICE = 0.01
MIN_VOLATILITY = 0.01
MAX_VOLATILITY = 1.0


@dataclass(frozen=True)
class HestonParams:
    drift: float
    vol_of_vol: float
    mean_reversion: float
    long_term_vol: float
    correlation: float


@dataclass(frozen=True)
class HistoryPoint:
    tick: int
    price: float
    volume: int


@dataclass(frozen=True)
class PendingEffects:
    """One-shot multipliers queued by an acknowledged news event."""
    price_multiplier: float = 1.0
    volatility_multiplier: float = 1.0
    impact_magnitude: float = 0.0


@dataclass
class Instrument:
    symbol: str
    name: str
    sector: str
    quality: float
    price: float
    volatility: float
    params: HestonParams
    base_volume: int
    history: list[HistoryPoint] = field(default_factory=list)
    _pending: PendingEffects | None = field(default=None, repr=False)

    @property
    def fundamental_value(self) -> float:
        return self.quality * 100

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def stage_pending(self, effects: PendingEffects) -> None:
        self._pending = effects

    def consume_pending(self) -> PendingEffects | None:
        """Return the queued effects and clear the slot so they apply once."""
        effects, self._pending = self._pending, None
        return effects

    def last_return(self) -> float:
        """Return between the last two history points (0 with fewer than two)."""
        if len(self.history) < 2:
            return 0.0
        prev = self.history[-2].price
        return (self.price - prev) / prev

    def last_change(self) -> tuple[float, float]:
        """(absolute change, percent change) versus the previous history point."""
        if len(self.history) < 2:
            return 0.0, 0.0
        prev = self.history[-2].price
        change = self.price - prev
        return change, change / prev * 100

    def append_history(self, point: HistoryPoint, max_points: int = 0) -> None:
        self.history.append(point)
        if max_points > 0 and len(self.history) > max_points:
            del self.history[: len(self.history) - max_points]


@dataclass
class MarketState:
    sentiment: float = 0.0
    regime: str = "Bull"
    tick: int = 0
    running: bool = False


@dataclass
class Account:
    cash: float
    holdings: dict[str, int] = field(default_factory=dict)
    cumulative_fees: float = 0.0

    def position(self, symbol: str) -> int:
        return self.holdings.get(symbol, 0)

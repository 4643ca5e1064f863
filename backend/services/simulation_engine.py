"""
Market simulation engine.
Owns the session aggregate (roster, market, account, event cursor) and the
two state transitions: advance_tick for the timer, execute_trade for the player.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from config import GameSettings
from schemas.news_event import NewsEvent
from services.agent_demand import simulate_agents
from services.event_effects import EventEffectProcessor
from services.ledger import TradeOrder, TradeReceipt, TradingLedger, add_funds
from services.market_models import (
    Account,
    HestonParams,
    HistoryPoint,
    Instrument,
    MarketState,
)
from services.price_engine import advance_instrument
from services.random_source import RandomStream
from services.sentiment import apply_sentiment_delta, maybe_redraw_regime, update_sentiment
from services.volume import generate_volume

logger = logging.getLogger(__name__)

# symbol, name, sector, quality
COMPANIES: tuple[tuple[str, str, str, float], ...] = (
    ("TECH", "TechCorp", "Technology", 0.8),
    ("MEDI", "MediCure", "Healthcare", 0.7),
    ("FINF", "FinanceFlow", "Finance", 0.6),
    ("ENMX", "EnergyMax", "Energy", 0.5),
    ("CONS", "ConsumeAll", "Consumer", 0.7),
    ("BLTC", "BuildTech", "Industrial", 0.6),
    ("CLNT", "CloudNet", "Technology", 0.9),
    ("HLTH", "HealthPlus", "Healthcare", 0.8),
    ("BNKS", "BankSecure", "Finance", 0.7),
    ("OILD", "OilDrill", "Energy", 0.4),
    ("AIRG", "AirlineGo", "Industrial", 0.6),
    ("RETL", "RetailMax", "Consumer", 0.5),
)

SECTORS = tuple(dict.fromkeys(sector for _, _, sector, _ in COMPANIES))

HISTORY_PERIODS = {"1W": 7, "1M": 30, "6M": 180, "1Y": 365, "ALL": None}


# ── ROSTER GENERATION ──────────────────────────────────────────────────

def generate_heston_params(rng: RandomStream) -> HestonParams:
    """Draw per-instrument process parameters. Not calibrated to real data."""
    return HestonParams(
        drift=max(0.01, rng.normal(0.08, 0.03)),
        vol_of_vol=max(0.1, rng.normal(0.3, 0.1)),
        mean_reversion=max(0.5, rng.normal(2.0, 0.5)),
        long_term_vol=max(0.1, rng.normal(0.25, 0.05)),
        correlation=max(-0.9, min(-0.3, rng.normal(-0.7, 0.2))),
    )


def generate_instruments(rng: RandomStream) -> list[Instrument]:
    return [
        Instrument(
            symbol=symbol,
            name=name,
            sector=sector,
            quality=quality,
            price=round(rng.between(50, 150), 2),
            volatility=rng.between(0.2, 0.5),
            params=generate_heston_params(rng),
            base_volume=int(rng.between(1000, 10000)),
        )
        for symbol, name, sector, quality in COMPANIES
    ]


# ── SESSION AGGREGATE ──────────────────────────────────────────────────

@dataclass
class SimulationState:
    instruments: list[Instrument]
    market: MarketState
    account: Account
    events: EventEffectProcessor
    starting_cash: float
    _by_symbol: dict[str, Instrument] = field(init=False, repr=False)

    def __post_init__(self):
        self._by_symbol = {i.symbol: i for i in self.instruments}

    @property
    def by_symbol(self) -> dict[str, Instrument]:
        return self._by_symbol

    def instrument(self, symbol: str) -> Instrument | None:
        return self._by_symbol.get(symbol)


def new_simulation_state(
    settings: GameSettings,
    rng: RandomStream,
    catalog: tuple[NewsEvent, ...] = (),
) -> SimulationState:
    """Fresh roster and account. Used at session start and on reset."""
    return SimulationState(
        instruments=generate_instruments(rng),
        market=MarketState(
            sentiment=settings.market.initial_sentiment,
            regime=settings.market.initial_regime,
            tick=0,
            running=False,
        ),
        account=Account(cash=settings.game.starting_cash),
        events=EventEffectProcessor(catalog),
        starting_cash=settings.game.starting_cash,
    )


# ── TICK ───────────────────────────────────────────────────────────────

@dataclass
class TickReport:
    tick: int
    sentiment: float
    regime: str
    regime_changed: bool = False
    surfaced_event: NewsEvent | None = None
    applied_event: NewsEvent | None = None
    demand: dict[str, float] = field(default_factory=dict)
    volumes: dict[str, int] = field(default_factory=dict)


def advance_tick(state: SimulationState, rng: RandomStream, settings: GameSettings) -> TickReport:
    """Run one full tick in place.

    Order: sentiment, regime, event trigger, demand, price/volatility
    (consuming pending event effects), volume, history, tick counter.
    Surfacing an event stops the clock but the current tick completes.
    """
    market = state.market

    market.sentiment = update_sentiment(market.sentiment, rng)
    market.regime, regime_changed = maybe_redraw_regime(
        market.regime, settings.market.regime_change_probability, rng
    )
    if regime_changed:
        logger.debug("Regime redrawn at tick %d: %s", market.tick, market.regime)

    surfaced = state.events.check_trigger(
        settings.events.enabled, settings.events.event_probability, rng
    )
    if surfaced is not None:
        market.running = False

    demand = {}
    if settings.market.enable_agent_trading:
        demand = simulate_agents(state.instruments, market.sentiment, market.regime, rng)

    applied = state.events.stage_pending(state.instruments, settings.events.impact_multiplier)

    volumes = {}
    for instrument in state.instruments:
        instrument_demand = demand.get(instrument.symbol, 0.0)
        impact = advance_instrument(
            instrument, instrument_demand, rng, settings.market.volatility_multiplier
        )
        volume = generate_volume(
            instrument.base_volume, instrument_demand, rng, impact, market.sentiment
        )
        instrument.append_history(
            HistoryPoint(tick=market.tick, price=instrument.price, volume=volume),
            settings.advanced.max_history_points,
        )
        volumes[instrument.symbol] = volume

    report = TickReport(
        tick=market.tick,
        sentiment=market.sentiment,
        regime=market.regime,
        regime_changed=regime_changed,
        surfaced_event=surfaced,
        applied_event=applied,
        demand=demand,
        volumes=volumes,
    )
    market.tick += 1
    return report


# ── PLAYER ACTIONS ─────────────────────────────────────────────────────

def acknowledge_event(state: SimulationState) -> NewsEvent | None:
    """Accept the surfaced event: queue its effects and move sentiment now."""
    event = state.events.acknowledge()
    if event is not None:
        state.market.sentiment = apply_sentiment_delta(state.market.sentiment, event.delta_sentiment)
    return event


def execute_trade(state: SimulationState, order: TradeOrder, settings: GameSettings) -> TradeReceipt:
    """Apply a player order against current prices. Raises TradeRejected."""
    ledger = TradingLedger.from_options(settings.game)
    return ledger.execute(state.account, state.by_symbol, order)


def adjust_funds(state: SimulationState, amount: float) -> float:
    return add_funds(state.account, amount)


# ── VALUATION & VIEWS ──────────────────────────────────────────────────

def portfolio_value(state: SimulationState) -> float:
    total = 0.0
    for symbol, shares in state.account.holdings.items():
        instrument = state.instrument(symbol)
        if instrument is not None:
            total += instrument.price * shares
    return total


def valuation(state: SimulationState) -> dict[str, float]:
    holdings_value = portfolio_value(state)
    total_value = state.account.cash + holdings_value
    profit_loss = total_value - state.starting_cash
    return {
        "cash": round(state.account.cash, 2),
        "holdings_value": round(holdings_value, 2),
        "total_value": round(total_value, 2),
        "profit_loss": round(profit_loss, 2),
        "profit_loss_percent": round(profit_loss / state.starting_cash * 100, 2) if state.starting_cash else 0.0,
        "cumulative_fees": round(state.account.cumulative_fees, 2),
    }


def sentiment_label(sentiment: float) -> str:
    if sentiment > 0:
        return "Positive"
    if sentiment < 0:
        return "Negative"
    return "Neutral"


def filter_history(history: list[HistoryPoint], period: str) -> list[HistoryPoint]:
    """Trailing window of history for a chart period; unknown periods mean 1M."""
    if not history:
        return []
    days = HISTORY_PERIODS.get(period, HISTORY_PERIODS["1M"])
    if days is None:
        return list(history)
    return list(history[-days:])


def debug_info(state: SimulationState, rng: RandomStream) -> dict[str, Any]:
    """Internal model state for developer mode."""
    return {
        "seed": rng.seed,
        "event_cursor": state.events.cursor,
        "events_in_catalog": len(state.events.catalog),
        "pending_event": state.events.pending_event.description if state.events.pending_event else None,
        "instruments": {
            i.symbol: {
                "volatility": round(i.volatility, 5),
                "base_volume": i.base_volume,
                "fundamental_value": round(i.fundamental_value, 2),
                "params": {
                    "drift": round(i.params.drift, 4),
                    "vol_of_vol": round(i.params.vol_of_vol, 4),
                    "mean_reversion": round(i.params.mean_reversion, 4),
                    "long_term_vol": round(i.params.long_term_vol, 4),
                    "correlation": round(i.params.correlation, 4),
                },
                "has_pending_effects": i.has_pending,
            }
            for i in state.instruments
        },
    }

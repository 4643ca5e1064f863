"""
Two-factor stochastic-volatility price step.

Each instrument carries its own Heston-style parameters. One step draws
two correlated increments, moves variance toward its long-term level,
moves price log-normally, then folds in agent demand and any one-shot
event multipliers.
"""
import logging
import math

from services.errors import InvariantViolation
from services.market_models import (
    MAX_VOLATILITY,
    MIN_PRICE,
    MIN_VOLATILITY,
    HestonParams,
    Instrument,
)
from services.random_source import RandomStream

logger = logging.getLogger(__name__)

DT = 1 / 252
DEMAND_PRICE_IMPACT = 0.1


def correlated_increments(correlation: float, rng: RandomStream, dt: float = DT) -> tuple[float, float]:
    dw1 = rng.brownian_increment(dt)
    independent = rng.brownian_increment(dt)
    dw2 = correlation * dw1 + math.sqrt(1 - correlation ** 2) * independent
    return dw1, dw2


def heston_step(
    price: float,
    volatility: float,
    params: HestonParams,
    rng: RandomStream,
    dt: float = DT,
) -> tuple[float, float]:
    """Return the unrounded (price, volatility) after one step."""
    dw1, dw2 = correlated_increments(params.correlation, rng, dt)
    root_vol = math.sqrt(volatility)

    new_vol = max(
        MIN_VOLATILITY,
        volatility
        + params.mean_reversion * (params.long_term_vol - volatility) * dt
        + params.vol_of_vol * root_vol * dw2,
    )
    new_price = price * math.exp((params.drift - 0.5 * volatility) * dt + root_vol * dw1)
    return new_price, new_vol


def _within(value: float, low: float, high: float, fallback: float, label: str, symbol: str) -> float:
    if not math.isfinite(value):
        violation = InvariantViolation(f"{label} for {symbol} is {value}, reverting to {fallback}")
        logger.error("%s", violation)
        value = fallback
    return max(low, min(high, value))


def advance_instrument(
    instrument: Instrument,
    demand: float,
    rng: RandomStream,
    volatility_multiplier: float = 1.0,
    dt: float = DT,
) -> float:
    """Move one instrument forward a tick in place.

    Consumes the instrument's pending event effects, if any. Returns the
    event impact magnitude applied this tick (0 without an event), which
    feeds the volume model.
    """
    previous_price = instrument.price
    previous_vol = instrument.volatility

    price, volatility = heston_step(instrument.price, instrument.volatility, instrument.params, rng, dt)
    price = max(MIN_PRICE, price * (1 + demand * DEMAND_PRICE_IMPACT))

    impact = 0.0
    effects = instrument.consume_pending()
    if effects is not None:
        price *= effects.price_multiplier
        impact = effects.impact_magnitude

    volatility *= volatility_multiplier
    if effects is not None:
        volatility *= effects.volatility_multiplier

    instrument.price = _within(
        round(price, 2), MIN_PRICE, math.inf, previous_price, "price", instrument.symbol
    )
    instrument.volatility = _within(
        volatility, MIN_VOLATILITY, MAX_VOLATILITY, previous_vol, "volatility", instrument.symbol
    )
    return impact

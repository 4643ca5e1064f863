"""
Synthetic trader demand.

Three populations contribute to a per-instrument demand scalar:
fundamentalists trade toward quality * 100, chartists chase the last
one-step return, and noise traders add a small symmetric perturbation.
The total is scaled by sentiment and the current regime. Demand is not
clamped; typical values sit in roughly [-1, 1].
"""
from typing import Iterable

from services.market_models import Instrument
from services.random_source import RandomStream

FUNDAMENTALIST_WEIGHT = 0.3
CHARTIST_WEIGHT = 0.2
CHARTIST_THRESHOLD = 0.02
NOISE_SPREAD = 0.1
SENTIMENT_SENSITIVITY = 0.5

REGIME_SCALE = {"Bull": 1.2, "Bear": 0.8}
VOLATILE_SCALE_RANGE = (0.8, 1.2)


def fundamentalist_demand(instrument: Instrument) -> float:
    value = instrument.fundamental_value
    if instrument.price < value:
        return FUNDAMENTALIST_WEIGHT
    if instrument.price > value:
        return -FUNDAMENTALIST_WEIGHT
    return 0.0


def chartist_demand(instrument: Instrument) -> float:
    recent = instrument.last_return()
    if recent > CHARTIST_THRESHOLD:
        return CHARTIST_WEIGHT
    if recent < -CHARTIST_THRESHOLD:
        return -CHARTIST_WEIGHT
    return 0.0


def regime_scale(regime: str, rng: RandomStream) -> float:
    if regime in REGIME_SCALE:
        return REGIME_SCALE[regime]
    return rng.between(*VOLATILE_SCALE_RANGE)


def simulate_agents(
    instruments: Iterable[Instrument],
    sentiment: float,
    regime: str,
    rng: RandomStream,
) -> dict[str, float]:
    """Compute the demand signal for every instrument, keyed by symbol."""
    demand = {}
    for instrument in instruments:
        raw = fundamentalist_demand(instrument) + chartist_demand(instrument)
        raw += (rng.uniform() - 0.5) * NOISE_SPREAD
        raw *= 1 + sentiment * SENTIMENT_SENSITIVITY
        raw *= regime_scale(regime, rng)
        demand[instrument.symbol] = raw
    return demand

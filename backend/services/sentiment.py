"""
Market-wide sentiment and regime dynamics.

Sentiment follows a mean-reverting (Ornstein-Uhlenbeck style) process
bounded to [-1, 1]. The regime is redrawn at random with a fixed
per-tick probability; the redraw is memoryless and may land on the
current regime again.
"""
from services.market_models import REGIMES
from services.random_source import RandomStream

DT = 1 / 252

REVERSION_SPEED = 0.5
LONG_TERM_MEAN = 0.0
NOISE_VOLATILITY = 0.1


def clamp_sentiment(value: float) -> float:
    return max(-1.0, min(1.0, value))


def update_sentiment(sentiment: float, rng: RandomStream, dt: float = DT) -> float:
    """Advance sentiment by one step."""
    dw = rng.brownian_increment(dt)
    updated = (
        sentiment
        + REVERSION_SPEED * (LONG_TERM_MEAN - sentiment) * dt
        + NOISE_VOLATILITY * dw
    )
    return clamp_sentiment(updated)


def apply_sentiment_delta(sentiment: float, delta: float) -> float:
    return clamp_sentiment(sentiment + delta)


def maybe_redraw_regime(regime: str, probability: float, rng: RandomStream) -> tuple[str, bool]:
    """Return (regime, redrawn). The redraw picks uniformly from all regimes."""
    if rng.uniform() < probability:
        return rng.choice(REGIMES), True
    return regime, False

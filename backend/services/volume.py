"""Reported trade volume for a tick."""
from services.random_source import RandomStream

BASE_JITTER = (0.8, 1.2)
DEMAND_VOLUME_FACTOR = 2.0
EVENT_VOLUME_FACTOR = 3.0
SENTIMENT_VOLUME_FACTOR = 0.5


def generate_volume(
    base_volume: int,
    demand: float,
    rng: RandomStream,
    event_impact: float = 0.0,
    sentiment: float = 0.0,
) -> int:
    volume = base_volume * rng.between(*BASE_JITTER)
    volume *= 1 + abs(demand) * DEMAND_VOLUME_FACTOR
    volume *= 1 + event_impact * EVENT_VOLUME_FACTOR
    volume *= 1 + abs(sentiment) * SENTIMENT_VOLUME_FACTOR
    return max(0, round(volume))

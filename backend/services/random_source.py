"""
Injectable source of randomness for the simulation.

Every stochastic component draws from one RandomStream so a session can be
replayed from its seed, and tests can substitute fixed variates.
"""
import math
import random
from typing import Sequence


class RandomStream:
    """Thin wrapper over random.Random exposing the draws the engine needs."""

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def uniform(self) -> float:
        """Uniform variate in [0, 1)."""
        return self._rng.random()

    def between(self, low: float, high: float) -> float:
        return low + self.uniform() * (high - low)

    def normal(self, mean: float, std_dev: float) -> float:
        return self._rng.gauss(mean, std_dev)

    def choice(self, options: Sequence):
        return options[int(self.uniform() * len(options)) % len(options)]

    def brownian_increment(self, dt: float) -> float:
        """Zero-mean increment uniform on [-sqrt(dt)/2, sqrt(dt)/2).

        Its variance is dt/12, not dt. Kept as-is so simulated paths match
        the game's established behavior.
        """
        root_dt = math.sqrt(dt)
        return self.uniform() * root_dt - root_dt / 2


class FixedStream(RandomStream):
    """Stream that replays a fixed cycle of uniform variates.

    Useful for deterministic scenarios: FixedStream(0.5) makes every
    Brownian increment exactly zero.
    """

    def __init__(self, *values: float):
        super().__init__(seed=0)
        self._values = list(values) or [0.5]
        self._index = 0

    def uniform(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value

    def normal(self, mean: float, std_dev: float) -> float:
        return mean

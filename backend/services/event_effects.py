"""
News event lifecycle: trigger, acknowledgement, and one-shot application.

An event moves through three phases that never share a tick:

1. surfaced  - picked from the catalog cursor during a tick's trigger check;
               the simulation pauses, the cursor stays put.
2. pending   - the player acknowledged it; sentiment has already moved and
               the cursor advanced.
3. applied   - at the next tick's price step the event is converted to
               per-instrument multipliers, staged on each affected
               instrument, and dropped from the processor.
"""
import logging
from typing import Iterable, Sequence

from schemas.news_event import NewsEvent
from services.market_models import Instrument, PendingEffects
from services.random_source import RandomStream

logger = logging.getLogger(__name__)

EVENT_PRICE_IMPACT = 0.1


def compute_effects(event: NewsEvent, sector: str, impact_multiplier: float) -> PendingEffects | None:
    """Multipliers an event applies to a sector, or None if it doesn't touch it."""
    positive, negative = event.sector_impacts.first_match(sector)
    if positive is None and negative is None:
        return None

    price_multiplier = 1.0
    volatility_multiplier = 1.0
    impact = 0.0
    if positive is not None:
        price_multiplier *= 1 + positive.magnitude * EVENT_PRICE_IMPACT * impact_multiplier
        volatility_multiplier *= 1 + positive.volatility
        impact = max(impact, positive.magnitude)
    if negative is not None:
        price_multiplier *= 1 - negative.magnitude * EVENT_PRICE_IMPACT * impact_multiplier
        volatility_multiplier *= 1 + negative.volatility
        impact = max(impact, negative.magnitude)

    return PendingEffects(
        price_multiplier=price_multiplier,
        volatility_multiplier=volatility_multiplier,
        impact_magnitude=impact,
    )


class EventEffectProcessor:
    """Holds the catalog cursor and the surfaced/pending event slots."""

    def __init__(self, catalog: Sequence[NewsEvent] = ()):
        self.catalog: tuple[NewsEvent, ...] = tuple(catalog)
        self.cursor = 0
        self.current_event: NewsEvent | None = None
        self.pending_event: NewsEvent | None = None

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.catalog)

    @property
    def remaining(self) -> int:
        return max(0, len(self.catalog) - self.cursor)

    @property
    def awaiting_acknowledgement(self) -> bool:
        return self.current_event is not None

    def check_trigger(self, enabled: bool, probability: float, rng: RandomStream) -> NewsEvent | None:
        """Surface the event at the cursor with the given probability."""
        if not enabled or self.awaiting_acknowledgement:
            return None
        if rng.uniform() >= probability or self.exhausted:
            return None
        self.current_event = self.catalog[self.cursor]
        logger.info("News event surfaced (#%d): %s", self.cursor, self.current_event.description)
        return self.current_event

    def acknowledge(self) -> NewsEvent | None:
        """Queue the surfaced event for the next tick and advance the cursor.

        The caller applies the sentiment delta. Returns None when nothing
        was awaiting acknowledgement.
        """
        event = self.current_event
        if event is None:
            return None
        self.pending_event = event
        self.current_event = None
        self.cursor += 1
        logger.info("News event acknowledged, effects apply next tick: %s", event.description)
        return event

    def stage_pending(self, instruments: Iterable[Instrument], impact_multiplier: float) -> NewsEvent | None:
        """Convert the pending event into per-instrument effects and clear it."""
        event = self.pending_event
        if event is None:
            return None
        self.pending_event = None
        for instrument in instruments:
            effects = compute_effects(event, instrument.sector, impact_multiplier)
            if effects is not None:
                instrument.stage_pending(effects)
        return event

"""
Game session: the command surface the UI talks to.

One session owns the simulation aggregate, its random stream, the tick
scheduler and a lock. Every tick and every command runs under the lock,
so a trade never observes a half-updated instrument.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from config import GameSettings
from schemas.news_event import NewsEvent
from services import simulation_engine as engine
from services.errors import TradeRejected
from services.ledger import TradeOrder, TradeReceipt
from services.random_source import RandomStream
from services.scheduler import TickScheduler

logger = logging.getLogger(__name__)

EVENT_PENDING = "event_pending"
NO_EVENT = "no_event"
ALREADY_RUNNING = "already_running"
ALREADY_PAUSED = "already_paused"


@dataclass
class CommandResult:
    success: bool
    reason: str | None = None
    message: str | None = None
    receipt: TradeReceipt | None = None
    event: NewsEvent | None = None
    cash: float | None = None

    @classmethod
    def rejected(cls, reason: str, message: str = "") -> "CommandResult":
        return cls(success=False, reason=reason, message=message or reason)


class GameSession:
    def __init__(
        self,
        settings: GameSettings | None = None,
        catalog: tuple[NewsEvent, ...] = (),
        rng_factory: Callable[[int | None], RandomStream] = RandomStream,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or GameSettings()
        self.catalog = tuple(catalog)
        self._rng_factory = rng_factory
        self._lock = threading.RLock()
        self._auto_continue: asyncio.TimerHandle | None = None
        self.rng = rng_factory(self.settings.advanced.random_seed)
        self.state = engine.new_simulation_state(self.settings, self.rng, self.catalog)
        self.last_report: engine.TickReport | None = None
        self.scheduler = TickScheduler(
            on_tick=self.tick,
            interval_seconds=lambda: self.settings.game.tick_interval / 1000,
            sleep=sleep,
        )

    @property
    def running(self) -> bool:
        return self.state.market.running

    # ── TICKING ────────────────────────────────────────────────────────

    def tick(self) -> bool:
        """Run one tick if the clock is running. Returns whether it still is."""
        with self._lock:
            if not self.state.market.running:
                return False
            report = engine.advance_tick(self.state, self.rng, self.settings)
            self.last_report = report
            logger.debug(
                "Tick %d: sentiment=%.4f regime=%s", report.tick, report.sentiment, report.regime
            )
            if report.surfaced_event is not None:
                self._schedule_auto_continue()
            return self.state.market.running

    def _schedule_auto_continue(self) -> None:
        if not self.settings.events.auto_continue:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cancel_auto_continue()
        self._auto_continue = loop.call_later(
            self.settings.events.auto_continue_delay, self._auto_acknowledge
        )

    def _cancel_auto_continue(self) -> None:
        if self._auto_continue is not None:
            self._auto_continue.cancel()
            self._auto_continue = None

    def _auto_acknowledge(self) -> None:
        self._auto_continue = None
        result = self.acknowledge_event()
        if result.success:
            logger.info("Auto-continued past news event")
            self.resume()

    # ── COMMANDS ───────────────────────────────────────────────────────

    def pause(self) -> CommandResult:
        with self._lock:
            if not self.state.market.running:
                return CommandResult.rejected(ALREADY_PAUSED, "Simulation is already paused")
            self.state.market.running = False
            self.scheduler.cancel()
        logger.info("Simulation paused at tick %d", self.state.market.tick)
        return CommandResult(success=True)

    def resume(self) -> CommandResult:
        with self._lock:
            if self.state.events.awaiting_acknowledgement:
                return CommandResult.rejected(EVENT_PENDING, "Acknowledge the news event before resuming")
            if self.state.market.running:
                return CommandResult.rejected(ALREADY_RUNNING, "Simulation is already running")
            self.state.market.running = True
            self.scheduler.start()
        logger.info("Simulation resumed at tick %d", self.state.market.tick)
        return CommandResult(success=True)

    def acknowledge_event(self) -> CommandResult:
        with self._lock:
            event = engine.acknowledge_event(self.state)
            if event is None:
                return CommandResult.rejected(NO_EVENT, "No news event is awaiting acknowledgement")
            self._cancel_auto_continue()
        return CommandResult(success=True, event=event)

    def submit_trade(self, symbol: str, shares: int, side: str) -> CommandResult:
        order = TradeOrder(symbol=symbol, shares=shares, side=side)
        with self._lock:
            try:
                receipt = engine.execute_trade(self.state, order, self.settings)
            except TradeRejected as exc:
                logger.info("Trade rejected (%s): %s", exc.reason, exc)
                return CommandResult.rejected(exc.reason, str(exc))
        return CommandResult(success=True, receipt=receipt, cash=receipt.cash_after)

    def add_funds(self, amount: float) -> CommandResult:
        with self._lock:
            try:
                cash = engine.adjust_funds(self.state, amount)
            except TradeRejected as exc:
                logger.info("Funds adjustment rejected (%s): %s", exc.reason, exc)
                return CommandResult.rejected(exc.reason, str(exc))
        logger.info("Funds adjusted by %.2f, cash now %.2f", amount, cash)
        return CommandResult(success=True, cash=cash)

    def reset(self) -> CommandResult:
        """Discard history and regenerate the roster and account."""
        with self._lock:
            self.scheduler.cancel()
            self._cancel_auto_continue()
            self.rng = self._rng_factory(self.settings.advanced.random_seed)
            self.state = engine.new_simulation_state(self.settings, self.rng, self.catalog)
            self.last_report = None
        logger.info("Game reset (seed=%s)", self.settings.advanced.random_seed)
        return CommandResult(success=True, cash=self.state.account.cash)

    def update_settings(self, settings: GameSettings) -> CommandResult:
        """Swap settings. Seed and starting cash take effect on the next reset."""
        with self._lock:
            changes = self.settings.diff(settings)
            self.settings = settings
        if changes:
            logger.info("Settings updated: %s", changes)
        return CommandResult(success=True)

    async def shutdown(self) -> None:
        self._cancel_auto_continue()
        with self._lock:
            self.state.market.running = False
        await self.scheduler.stop()

    # ── VIEWS ──────────────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        """Consistent view of the whole session for the UI."""
        with self._lock:
            state = self.state
            instruments = []
            for instrument in state.instruments:
                change, change_percent = instrument.last_change()
                instruments.append({
                    "symbol": instrument.symbol,
                    "name": instrument.name,
                    "sector": instrument.sector,
                    "quality": instrument.quality,
                    "price": instrument.price,
                    "change": round(change, 2),
                    "change_percent": round(change_percent, 2),
                    "volume": instrument.history[-1].volume if instrument.history else None,
                    "position": state.account.position(instrument.symbol),
                })

            advanced = self.settings.advanced
            show_debug = advanced.developer_mode or advanced.show_debug_info
            return {
                "market": {
                    "tick": state.market.tick,
                    "running": state.market.running,
                    "sentiment": round(state.market.sentiment, 4),
                    "sentiment_label": engine.sentiment_label(state.market.sentiment),
                    "regime": state.market.regime,
                },
                "account": {
                    **engine.valuation(state),
                    "holdings": {s: n for s, n in state.account.holdings.items() if n != 0},
                    "starting_cash": state.starting_cash,
                },
                "instruments": instruments,
                "current_event": state.events.current_event,
                "events_remaining": state.events.remaining,
                "debug": engine.debug_info(state, self.rng) if show_debug else None,
            }

    def history(self, symbol: str, period: str = "1M"):
        with self._lock:
            instrument = self.state.instrument(symbol)
            if instrument is None:
                return None
            return engine.filter_history(instrument.history, period)

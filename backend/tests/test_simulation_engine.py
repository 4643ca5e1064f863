"""
Tests for the tick pipeline and the session aggregate.
"""
import copy
import math

import pytest

from config import GameSettings
from schemas.news_event import NewsEvent
from services import simulation_engine as engine
from services.market_models import HistoryPoint, REGIMES
from services.random_source import FixedStream, RandomStream


def _make_event(sector="Technology", magnitude=0.2, volatility=0.1, negative=False, delta=0.0):
    impact = {"sector": sector, "magnitude": magnitude, "volatility": volatility}
    return NewsEvent.model_validate({
        "description": "Test event",
        "sectorImpacts": {
            "positive": [] if negative else [impact],
            "negative": [impact] if negative else [],
        },
        "deltaSentiment": delta,
        "significance": 0.5,
    })


def _settings(**groups):
    return GameSettings.model_validate(groups)


def _fixed_state(settings=None, catalog=()):
    settings = settings or GameSettings()
    return engine.new_simulation_state(settings, FixedStream(0.5), catalog)


class TestRoster:
    def test_twelve_instruments_with_unique_symbols(self):
        state = engine.new_simulation_state(GameSettings(), RandomStream(1))
        symbols = [i.symbol for i in state.instruments]
        assert len(symbols) == 12
        assert len(set(symbols)) == 12

    def test_initial_values_within_ranges(self):
        state = engine.new_simulation_state(GameSettings(), RandomStream(3))
        for inst in state.instruments:
            assert 50 <= inst.price <= 150
            assert round(inst.price, 2) == inst.price
            assert 0.2 <= inst.volatility <= 0.5
            assert 1000 <= inst.base_volume < 10000
            assert inst.history == []
            p = inst.params
            assert p.drift >= 0.01
            assert p.vol_of_vol >= 0.1
            assert p.mean_reversion >= 0.5
            assert p.long_term_vol >= 0.1
            assert -0.9 <= p.correlation <= -0.3

    def test_account_and_market_from_settings(self):
        settings = _settings(
            game={"starting_cash": 25000},
            market={"initial_regime": "Bear", "initial_sentiment": -0.4},
        )
        state = engine.new_simulation_state(settings, RandomStream(1))
        assert state.account.cash == 25000
        assert state.account.holdings == {}
        assert state.market.regime == "Bear"
        assert state.market.sentiment == -0.4
        assert state.market.tick == 0
        assert state.market.running is False

    def test_same_seed_same_roster(self):
        a = engine.new_simulation_state(GameSettings(), RandomStream(99))
        b = engine.new_simulation_state(GameSettings(), RandomStream(99))
        assert [(i.price, i.params) for i in a.instruments] == [(i.price, i.params) for i in b.instruments]


class TestAdvanceTick:
    def test_tick_appends_history_and_increments_counter(self):
        state = _fixed_state()
        report = engine.advance_tick(state, FixedStream(0.5), GameSettings())
        assert report.tick == 0
        assert state.market.tick == 1
        for inst in state.instruments:
            assert len(inst.history) == 1
            point = inst.history[0]
            assert point.tick == 0
            assert point.price == inst.price
            assert point.volume > 0

    def test_zero_noise_price_follows_drift(self):
        state = _fixed_state()
        inst = state.instruments[0]
        start_price, start_vol = inst.price, inst.volatility
        engine.advance_tick(state, FixedStream(0.5), GameSettings())
        expected = start_price * math.exp((inst.params.drift - 0.5 * start_vol) / 252)
        assert inst.price == pytest.approx(expected, abs=0.005)

    def test_agent_trading_disabled_means_no_demand(self):
        state = _fixed_state()
        report = engine.advance_tick(state, FixedStream(0.5), GameSettings())
        assert report.demand == {}

    def test_agent_trading_enabled_reports_demand(self):
        state = _fixed_state()
        settings = _settings(market={"enable_agent_trading": True})
        report = engine.advance_tick(state, FixedStream(0.5), settings)
        assert set(report.demand) == {i.symbol for i in state.instruments}
        # Every FixedStream price is 100, so only quality decides the sign
        assert report.demand["CLNT"] < 0  # fundamental 90
        assert report.demand["TECH"] < 0  # fundamental 80

    def test_deterministic_with_seed(self):
        settings = _settings(market={"enable_agent_trading": True})
        a = engine.new_simulation_state(settings, RandomStream(5))
        b = engine.new_simulation_state(settings, RandomStream(5))
        rng_a, rng_b = RandomStream(11), RandomStream(11)
        for _ in range(50):
            engine.advance_tick(a, rng_a, settings)
            engine.advance_tick(b, rng_b, settings)
        assert [i.history for i in a.instruments] == [i.history for i in b.instruments]
        assert a.market.sentiment == b.market.sentiment

    def test_max_history_points_trims_oldest(self):
        state = _fixed_state()
        settings = _settings(advanced={"max_history_points": 5})
        for _ in range(8):
            engine.advance_tick(state, FixedStream(0.5), settings)
        history = state.instruments[0].history
        assert len(history) == 5
        assert [p.tick for p in history] == [3, 4, 5, 6, 7]


class TestInvariants:
    @pytest.mark.parametrize("vol_mult", [0.1, 1.0, 5.0])
    def test_bounds_hold_under_stress(self, vol_mult):
        catalog = tuple(
            _make_event(sector=s, magnitude=1.0, volatility=2.0, negative=i % 2 == 0, delta=0.9 if i % 3 else -0.9)
            for i, s in enumerate(engine.SECTORS * 5)
        )
        settings = _settings(
            market={
                "enable_agent_trading": True,
                "volatility_multiplier": vol_mult,
                "regime_change_probability": 0.5,
            },
            events={"event_probability": 1.0, "impact_multiplier": 5.0},
        )
        rng = RandomStream(2024)
        state = engine.new_simulation_state(settings, rng, catalog)

        for _ in range(400):
            engine.advance_tick(state, rng, settings)
            if state.events.awaiting_acknowledgement:
                engine.acknowledge_event(state)
            assert -1 <= state.market.sentiment <= 1
            assert state.market.regime in REGIMES
            for inst in state.instruments:
                assert inst.price >= 0.01
                assert 0.01 <= inst.volatility <= 1.0
        assert state.events.exhausted


class TestEventFlow:
    def test_surfaced_event_pauses_but_tick_completes(self):
        event = _make_event()
        settings = _settings(events={"event_probability": 1.0})
        state = _fixed_state(settings, (event,))
        state.market.running = True

        report = engine.advance_tick(state, FixedStream(0.5), settings)
        assert report.surfaced_event is event
        assert state.market.running is False
        assert state.events.cursor == 0
        assert all(len(i.history) == 1 for i in state.instruments)

    def test_acknowledge_moves_sentiment_and_cursor(self):
        event = _make_event(delta=0.3)
        settings = _settings(events={"event_probability": 1.0})
        state = _fixed_state(settings, (event,))
        engine.advance_tick(state, FixedStream(0.5), settings)

        before = state.market.sentiment
        assert engine.acknowledge_event(state) is event
        assert state.market.sentiment == pytest.approx(min(1.0, before + 0.3))
        assert state.events.cursor == 1
        assert state.events.pending_event is event

    def test_acknowledge_clamps_sentiment(self):
        event = _make_event(delta=1.0)
        settings = _settings(market={"initial_sentiment": 0.8}, events={"event_probability": 1.0})
        state = _fixed_state(settings, (event,))
        engine.advance_tick(state, FixedStream(0.5), settings)
        engine.acknowledge_event(state)
        assert state.market.sentiment == 1.0

    def test_pending_effects_apply_on_exactly_one_tick(self):
        settings = GameSettings()
        with_event = _fixed_state()
        without = copy.deepcopy(with_event)
        with_event.events.pending_event = _make_event(sector="Technology", magnitude=0.2, volatility=0.1)

        engine.advance_tick(with_event, FixedStream(0.5), settings)
        engine.advance_tick(without, FixedStream(0.5), settings)
        a1 = with_event.instrument("TECH").price
        b1 = without.instrument("TECH").price
        assert a1 == pytest.approx(b1 * 1.02, abs=0.01)
        # Untouched sector
        assert with_event.instrument("MEDI").price == without.instrument("MEDI").price
        assert with_event.events.pending_event is None
        assert not with_event.instrument("TECH").has_pending

        engine.advance_tick(with_event, FixedStream(0.5), settings)
        engine.advance_tick(without, FixedStream(0.5), settings)
        a2 = with_event.instrument("TECH").price
        b2 = without.instrument("TECH").price
        assert a2 / a1 == pytest.approx(b2 / b1, rel=1e-3)

    def test_event_raises_volume_on_application_tick(self):
        settings = GameSettings()
        with_event = _fixed_state()
        without = copy.deepcopy(with_event)
        with_event.events.pending_event = _make_event(sector="Energy", magnitude=0.5)

        a = engine.advance_tick(with_event, FixedStream(0.5), settings)
        b = engine.advance_tick(without, FixedStream(0.5), settings)
        assert a.volumes["ENMX"] == pytest.approx(b.volumes["ENMX"] * 2.5, abs=1)
        assert a.volumes["TECH"] == b.volumes["TECH"]


class TestViews:
    def test_valuation(self):
        state = _fixed_state()
        state.account.cash = 1000.0
        state.account.holdings = {"TECH": 10, "MEDI": -2}
        values = engine.valuation(state)
        assert values["holdings_value"] == pytest.approx(800.0)  # every price is 100
        assert values["total_value"] == pytest.approx(1800.0)
        assert values["profit_loss"] == pytest.approx(1800.0 - 100000.0)

    def test_sentiment_label(self):
        assert engine.sentiment_label(0.2) == "Positive"
        assert engine.sentiment_label(-0.01) == "Negative"
        assert engine.sentiment_label(0.0) == "Neutral"

    def test_filter_history_periods(self):
        history = [HistoryPoint(tick=t, price=100.0, volume=1) for t in range(400)]
        assert len(engine.filter_history(history, "1W")) == 7
        assert len(engine.filter_history(history, "6M")) == 180
        assert len(engine.filter_history(history, "ALL")) == 400
        assert len(engine.filter_history(history, "bogus")) == 30
        assert engine.filter_history(history, "1W")[-1].tick == 399
        assert engine.filter_history([], "1M") == []

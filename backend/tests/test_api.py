"""
HTTP tests for the game router and the ops endpoints.
"""
import json
import logging
import warnings

import pytest
from fastapi.testclient import TestClient

from config import GameSettings
from main import JSONFormatter, app
from schemas.news_event import NewsEvent
from services.game_session import GameSession

EVENT = NewsEvent.model_validate({
    "description": "Grid upgrade announced",
    "sectorImpacts": {"positive": [{"sector": "Energy", "magnitude": 0.5, "volatility": 0.2}]},
    "deltaSentiment": 0.3,
    "significance": 0.8,
})


def _install(client, catalog=(), **groups):
    groups.setdefault("game", {"tick_interval": 100})
    groups.setdefault("advanced", {"random_seed": 42})
    session = GameSession(GameSettings.model_validate(groups), catalog)
    client.app.state.session = session
    return session


@pytest.fixture
def client():
    with TestClient(app) as c:
        _install(c)
        yield c


class TestOps:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["docs"] == "/docs"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["checks"]["session"] == "ok"
        assert body["checks"]["running"] is False

    def test_json_log_timestamp_is_utc(self):
        record = logging.LogRecord("market_trainer", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            line = json.loads(JSONFormatter().format(record))
        assert line["message"] == "hello world"
        assert line["timestamp"].endswith("Z")
        assert "+00:00" not in line["timestamp"]


class TestState:
    def test_initial_state(self, client):
        body = client.get("/api/game/state").json()
        assert body["market"]["tick"] == 0
        assert body["market"]["running"] is False
        assert body["account"]["cash"] == 100000.0
        assert len(body["instruments"]) == 12
        assert body["current_event"] is None
        assert body["debug"] is None

    def test_history(self, client):
        session = client.app.state.session
        session.resume()
        for _ in range(10):
            session.tick()
        session.pause()

        body = client.get("/api/game/instruments/TECH/history", params={"period": "1W"}).json()
        assert body["symbol"] == "TECH"
        assert [p["tick"] for p in body["points"]] == list(range(3, 10))

    def test_history_unknown_symbol(self, client):
        response = client.get("/api/game/instruments/NOPE/history")
        assert response.status_code == 404


class TestCommands:
    def test_pause_resume(self, client):
        response = client.post("/api/game/pause")
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "already_paused"

        assert client.post("/api/game/resume").json()["success"] is True
        assert client.post("/api/game/pause").json()["success"] is True

    def test_trade_buy(self, client):
        response = client.post("/api/game/trades", json={"symbol": "TECH", "shares": 4, "side": "buy"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["receipt"]["shares"] == 4
        assert body["receipt"]["position_after"] == 4
        state = client.get("/api/game/state").json()
        assert state["account"]["holdings"] == {"TECH": 4}

    def test_trade_rejected(self, client):
        response = client.post("/api/game/trades", json={"symbol": "TECH", "shares": 4, "side": "sell"})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["success"] is False
        assert detail["reason"] == "insufficient_holdings"

    def test_trade_zero_shares(self, client):
        response = client.post("/api/game/trades", json={"symbol": "TECH", "shares": 0, "side": "buy"})
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "invalid_shares"

    def test_trade_bad_side(self, client):
        response = client.post("/api/game/trades", json={"symbol": "TECH", "shares": 1, "side": "hold"})
        assert response.status_code == 422

    def test_add_funds(self, client):
        assert client.post("/api/game/funds", json={"amount": 250}).json()["cash"] == 100250.0

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "1e400"])
    def test_add_funds_non_finite(self, client, raw):
        response = client.post(
            "/api/game/funds",
            content='{"amount": %s}' % raw,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "invalid_amount"
        state = client.get("/api/game/state").json()
        assert state["account"]["cash"] == 100000.0

    def test_reset(self, client):
        client.post("/api/game/trades", json={"symbol": "TECH", "shares": 1, "side": "buy"})
        body = client.post("/api/game/reset").json()
        assert body["success"] is True
        assert body["cash"] == 100000.0

    def test_acknowledge_without_event(self, client):
        response = client.post("/api/game/events/acknowledge")
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "no_event"


class TestEvents:
    def test_event_round_trip(self, client):
        session = _install(client, catalog=(EVENT,), events={"event_probability": 1.0})
        session.resume()
        session.tick()

        state = client.get("/api/game/state").json()
        assert state["market"]["running"] is False
        assert state["current_event"]["description"] == "Grid upgrade announced"
        assert state["current_event"]["sectorImpacts"]["positive"][0]["sector"] == "Energy"

        blocked = client.post("/api/game/resume")
        assert blocked.status_code == 400
        assert blocked.json()["detail"]["reason"] == "event_pending"

        ack = client.post("/api/game/events/acknowledge").json()
        assert ack["event"]["deltaSentiment"] == 0.3
        assert client.get("/api/game/state").json()["events_remaining"] == 0


class TestSettings:
    def test_get_defaults(self, client):
        body = client.get("/api/game/settings").json()
        assert body["game"]["tick_interval"] == 100
        assert body["market"]["initial_regime"] == "Bull"

    def test_put_with_malformed_values(self, client):
        payload = {
            "game": {"tick_interval": "fast", "trading_fees_enabled": True, "trading_fee_percent": 2},
            "market": {"initial_regime": "Sideways"},
        }
        body = client.put("/api/game/settings", json=payload).json()
        assert body["game"]["tick_interval"] == 500
        assert body["game"]["trading_fee_percent"] == 2.0
        assert body["market"]["initial_regime"] == "Bull"
        assert client.app.state.session.settings.game.trading_fees_enabled is True


class TestStream:
    def test_limited_frames(self, client):
        response = client.get("/api/game/stream", params={"frames": 2})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        frames = [f for f in response.text.split("\n\n") if f]
        assert len(frames) == 3
        first = json.loads(frames[0].removeprefix("data: "))
        assert first["market"]["tick"] == 0
        assert frames[-1].startswith("event: complete")

    def test_news_frame(self, client):
        session = _install(client, catalog=(EVENT,), events={"event_probability": 1.0})
        session.resume()
        session.tick()
        response = client.get("/api/game/stream", params={"frames": 1})
        assert "event: news" in response.text

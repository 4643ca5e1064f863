import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import GameSettings, get_settings
from schemas.game import (
    CommandResponse,
    FundsRequest,
    GameState,
    HistoryPointResponse,
    HistoryResponse,
    TradeRequest,
)
from services.game_session import CommandResult, GameSession
from services.simulation_engine import HISTORY_PERIODS

router = APIRouter(prefix="/api/game", tags=["game"])
settings = get_settings()

# Rate limiter for player commands: keyed by client IP
limiter = Limiter(key_func=get_remote_address)


def get_session(request: Request) -> GameSession:
    """Dependency for the process-wide game session."""
    return request.app.state.session


def _respond(result: CommandResult) -> CommandResponse:
    response = CommandResponse.model_validate(result)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=response.model_dump(mode="json", exclude_none=True),
        )
    return response


@router.get("/state", response_model=GameState)
async def get_state(session: GameSession = Depends(get_session)):
    """Current market, account and instrument snapshot."""
    return session.snapshot()


@router.post("/pause", response_model=CommandResponse)
async def pause(session: GameSession = Depends(get_session)):
    return _respond(session.pause())


@router.post("/resume", response_model=CommandResponse)
async def resume(session: GameSession = Depends(get_session)):
    """Start ticking. Refused while a news event awaits acknowledgement."""
    return _respond(session.resume())


@router.post("/events/acknowledge", response_model=CommandResponse)
async def acknowledge_event(session: GameSession = Depends(get_session)):
    """Accept the surfaced news event; its price effects land on the next tick."""
    return _respond(session.acknowledge_event())


@router.post("/trades", response_model=CommandResponse)
@limiter.limit(settings.command_rate_limit)
async def submit_trade(
    request: Request,
    trade: TradeRequest,
    session: GameSession = Depends(get_session),
):
    """Buy or sell at the price from the last completed tick."""
    return _respond(session.submit_trade(trade.symbol, trade.shares, trade.side))


@router.post("/funds", response_model=CommandResponse)
@limiter.limit(settings.command_rate_limit)
async def add_funds(
    request: Request,
    data: FundsRequest,
    session: GameSession = Depends(get_session),
):
    return _respond(session.add_funds(data.amount))


@router.post("/reset", response_model=CommandResponse)
async def reset(session: GameSession = Depends(get_session)):
    """Regenerate the roster and account. All history is discarded."""
    return _respond(session.reset())


@router.get("/settings", response_model=GameSettings)
async def get_game_settings(session: GameSession = Depends(get_session)):
    return session.settings


@router.put("/settings", response_model=GameSettings)
async def update_game_settings(data: GameSettings, session: GameSession = Depends(get_session)):
    """Replace game settings. Malformed numbers fall back to their defaults."""
    session.update_settings(data)
    return session.settings


@router.get("/instruments/{symbol}/history", response_model=HistoryResponse)
async def get_history(
    symbol: str,
    period: str = Query("1M", description="One of " + ", ".join(HISTORY_PERIODS)),
    session: GameSession = Depends(get_session),
):
    points = session.history(symbol, period)
    if points is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Instrument not found"
        )
    return HistoryResponse(
        symbol=symbol,
        period=period,
        points=[HistoryPointResponse.model_validate(p) for p in points],
    )


@router.get("/stream")
async def stream_state(
    request: Request,
    frames: Optional[int] = Query(None, ge=1, description="Stop after this many frames"),
    session: GameSession = Depends(get_session),
):
    """SSE endpoint pushing a state snapshot every tick interval."""

    async def event_generator():
        sent = 0
        last_event = None
        while True:
            if await request.is_disconnected():
                break

            snapshot = GameState.model_validate(session.snapshot())
            payload = snapshot.model_dump(mode="json", by_alias=True)
            yield f"data: {json.dumps(payload)}\n\n"

            event = payload["current_event"]
            if event is not None and event != last_event:
                yield f"event: news\ndata: {json.dumps(event)}\n\n"
            last_event = event

            sent += 1
            if frames is not None and sent >= frames:
                break
            await asyncio.sleep(session.settings.game.tick_interval / 1000)

        yield f"event: complete\ndata: {json.dumps({'frames': sent})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

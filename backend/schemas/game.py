from pydantic import BaseModel, Field
from typing import Optional, Any

from schemas.news_event import NewsEvent


class TradeRequest(BaseModel):
    """Request to buy or sell shares at the current price."""
    symbol: str
    shares: int  # validated by the ledger so rejections carry a reason
    side: str = Field(..., pattern="^(buy|sell)$")


class FundsRequest(BaseModel):
    """Cheat: add (or remove, if negative) cash."""
    amount: float  # non-finite values are rejected by the ledger with a reason


class TradeReceiptResponse(BaseModel):
    symbol: str
    side: str
    shares: int
    price: float
    gross: float
    fee: float
    cash_delta: float
    cash_after: float
    position_after: int

    class Config:
        from_attributes = True


class CommandResponse(BaseModel):
    success: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    receipt: Optional[TradeReceiptResponse] = None
    event: Optional[NewsEvent] = None
    cash: Optional[float] = None

    class Config:
        from_attributes = True


class MarketView(BaseModel):
    tick: int
    running: bool
    sentiment: float
    sentiment_label: str
    regime: str


class AccountView(BaseModel):
    cash: float
    holdings: dict[str, int]
    holdings_value: float
    total_value: float
    profit_loss: float
    profit_loss_percent: float
    cumulative_fees: float
    starting_cash: float


class InstrumentView(BaseModel):
    symbol: str
    name: str
    sector: str
    quality: float
    price: float
    change: float
    change_percent: float
    volume: Optional[int] = None  # last tick's volume
    position: int


class GameState(BaseModel):
    """Snapshot of the running game."""
    market: MarketView
    account: AccountView
    instruments: list[InstrumentView]
    current_event: Optional[NewsEvent] = None  # awaiting acknowledgement
    events_remaining: int
    debug: Optional[dict[str, Any]] = None  # developer mode only


class HistoryPointResponse(BaseModel):
    tick: int
    price: float
    volume: int

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    symbol: str
    period: str
    points: list[HistoryPointResponse]

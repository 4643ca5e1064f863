from schemas.news_event import (
    NewsEvent,
    SectorImpact,
    SectorImpacts
)
from schemas.game import (
    TradeRequest,
    FundsRequest,
    TradeReceiptResponse,
    CommandResponse,
    MarketView,
    AccountView,
    InstrumentView,
    GameState,
    HistoryPointResponse,
    HistoryResponse
)

__all__ = [
    # News events
    "NewsEvent", "SectorImpact", "SectorImpacts",
    # Game
    "TradeRequest", "FundsRequest", "TradeReceiptResponse", "CommandResponse",
    "MarketView", "AccountView", "InstrumentView", "GameState",
    "HistoryPointResponse", "HistoryResponse",
]

"""
Cash and holdings accounting for player trades.

Trades fill at the instrument price from the last completed tick. A
rejected trade raises TradeRejected before anything is mutated. Cash is
kept to the cent.
"""
import logging
import math
from dataclasses import dataclass
from typing import Literal, Mapping

from services.errors import TradeRejected
from services.market_models import Account, Instrument

logger = logging.getLogger(__name__)

Side = Literal["buy", "sell"]


@dataclass(frozen=True)
class TradeOrder:
    symbol: str
    shares: int
    side: Side


@dataclass(frozen=True)
class TradeReceipt:
    symbol: str
    side: Side
    shares: int
    price: float
    gross: float
    fee: float
    cash_delta: float
    cash_after: float
    position_after: int


def _to_cents(amount: float) -> float:
    return round(amount, 2) + 0.0


class TradingLedger:
    def __init__(self, fees_enabled: bool = False, fee_percent: float = 0.0, allow_short_selling: bool = False):
        self.fees_enabled = fees_enabled
        self.fee_percent = fee_percent
        self.allow_short_selling = allow_short_selling

    @classmethod
    def from_options(cls, game) -> "TradingLedger":
        return cls(
            fees_enabled=game.trading_fees_enabled,
            fee_percent=game.trading_fee_percent,
            allow_short_selling=game.allow_short_selling,
        )

    def fee_for(self, gross: float) -> float:
        if not self.fees_enabled:
            return 0.0
        return gross * self.fee_percent / 100

    def quote(self, price: float, shares: int) -> tuple[float, float]:
        """(gross, fee) for trading `shares` at `price`."""
        gross = price * shares
        return gross, self.fee_for(gross)

    @staticmethod
    def _check_shares(shares) -> None:
        if isinstance(shares, bool) or not isinstance(shares, int) or shares <= 0:
            raise TradeRejected(TradeRejected.INVALID_SHARES, f"Share count must be a positive integer, got {shares!r}")

    def buy(self, account: Account, instrument: Instrument, shares: int) -> TradeReceipt:
        self._check_shares(shares)
        gross, fee = self.quote(instrument.price, shares)
        cost = gross + fee
        if account.cash < cost:
            raise TradeRejected(
                TradeRejected.INSUFFICIENT_FUNDS,
                f"Buying {shares} {instrument.symbol} costs {cost:.2f}, only {account.cash:.2f} available",
            )

        cash_before = account.cash
        account.cash = max(0.0, _to_cents(account.cash - cost))
        account.holdings[instrument.symbol] = account.position(instrument.symbol) + shares
        account.cumulative_fees += fee
        return TradeReceipt(
            symbol=instrument.symbol,
            side="buy",
            shares=shares,
            price=instrument.price,
            gross=gross,
            fee=fee,
            cash_delta=account.cash - cash_before,
            cash_after=account.cash,
            position_after=account.holdings[instrument.symbol],
        )

    def sell(self, account: Account, instrument: Instrument, shares: int) -> TradeReceipt:
        self._check_shares(shares)
        held = account.position(instrument.symbol)
        if held < shares and not self.allow_short_selling:
            raise TradeRejected(
                TradeRejected.INSUFFICIENT_HOLDINGS,
                f"Cannot sell {shares} {instrument.symbol}, holding {held}",
            )

        gross, fee = self.quote(instrument.price, shares)
        cash_before = account.cash
        account.cash = _to_cents(account.cash + gross - fee)
        account.holdings[instrument.symbol] = held - shares
        account.cumulative_fees += fee
        return TradeReceipt(
            symbol=instrument.symbol,
            side="sell",
            shares=shares,
            price=instrument.price,
            gross=gross,
            fee=fee,
            cash_delta=account.cash - cash_before,
            cash_after=account.cash,
            position_after=account.holdings[instrument.symbol],
        )

    def execute(self, account: Account, instruments: Mapping[str, Instrument], order: TradeOrder) -> TradeReceipt:
        """Validate and apply an order. Raises TradeRejected on failure."""
        self._check_shares(order.shares)
        instrument = instruments.get(order.symbol)
        if instrument is None:
            raise TradeRejected(TradeRejected.UNKNOWN_SYMBOL, f"No instrument with symbol {order.symbol!r}")

        if order.side == "buy":
            receipt = self.buy(account, instrument, order.shares)
        else:
            receipt = self.sell(account, instrument, order.shares)
        logger.info(
            "Trade filled: %s %d %s @ %.2f (fee %.2f, cash %.2f)",
            receipt.side, receipt.shares, receipt.symbol, receipt.price, receipt.fee, receipt.cash_after,
        )
        return receipt


def add_funds(account: Account, amount: float) -> float:
    """Adjust cash by amount (may be negative), never below zero.

    Raises TradeRejected for NaN or infinite amounts, leaving cash as is.
    """
    if not math.isfinite(amount):
        raise TradeRejected(TradeRejected.INVALID_AMOUNT, f"Funds amount must be a finite number, got {amount!r}")
    account.cash = max(0.0, _to_cents(account.cash + amount))
    return account.cash

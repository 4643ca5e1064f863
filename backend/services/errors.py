"""
Error taxonomy for the market simulation.
None of these are fatal: each has a documented recovery path.
"""


class MarketSimError(Exception):
    """Base class for simulation errors."""


class ConfigurationError(MarketSimError):
    """A game setting was malformed; the caller substitutes the default."""

    def __init__(self, field: str, value, default):
        self.field = field
        self.value = value
        self.default = default
        super().__init__(f"Invalid value {value!r} for {field}, using default {default!r}")


class DataUnavailable(MarketSimError):
    """The news event catalog could not be fetched or parsed."""


class TradeRejected(MarketSimError):
    """A trade or funds adjustment failed validation. No state was mutated."""

    INVALID_SHARES = "invalid_shares"
    UNKNOWN_SYMBOL = "unknown_symbol"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    INVALID_AMOUNT = "invalid_amount"

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


class InvariantViolation(MarketSimError):
    """A numeric invariant broke after a step. Logged and clamped, never shown to the player."""

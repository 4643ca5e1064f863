import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from services.errors import ConfigurationError
from services.market_models import REGIMES, Regime

logger = logging.getLogger(__name__)

DEFAULT_EVENT_CATALOG = Path(__file__).parent / "data" / "news_events.json"


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = True
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # News event catalog: local JSON path or http(s) URL
    event_catalog_source: str = str(DEFAULT_EVENT_CATALOG)
    event_catalog_timeout_seconds: float = 5.0
    event_catalog_cache_ttl_seconds: int = 300

    # Rate limit for player commands (slowapi syntax)
    command_rate_limit: str = "30/second"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# ── Game settings ──────────────────────────────────────────────────────


class _OptionGroup(BaseModel):
    """Settings group whose malformed numeric values fall back to defaults."""

    # field name -> (min, max), inclusive
    _ranges: ClassVar[dict[str, tuple[float, float]]] = {}

    @model_validator(mode="before")
    @classmethod
    def _substitute_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for name, (low, high) in cls._ranges.items():
            if name not in cleaned:
                continue
            raw = cleaned[name]
            field = cls.model_fields[name]
            try:
                if isinstance(raw, bool):
                    raise ValueError(raw)
                value = float(raw)
                if math.isnan(value) or not low <= value <= high:
                    raise ValueError(raw)
            except (TypeError, ValueError):
                err = ConfigurationError(name, raw, field.default)
                logger.warning("%s", err)
                cleaned[name] = field.default
                continue
            cleaned[name] = int(value) if field.annotation is int else value
        return cleaned


class GameOptions(_OptionGroup):
    _ranges: ClassVar[dict[str, tuple[float, float]]] = {
        "starting_cash": (0, 1_000_000),
        "tick_interval": (100, 5000),
        "trading_fee_percent": (0, 5),
    }

    starting_cash: float = 100000.0
    tick_interval: int = 500  # milliseconds
    trading_fees_enabled: bool = False
    trading_fee_percent: float = 0.0
    allow_short_selling: bool = False


class MarketOptions(_OptionGroup):
    _ranges: ClassVar[dict[str, tuple[float, float]]] = {
        "volatility_multiplier": (0.1, 5.0),
        "initial_sentiment": (-1.0, 1.0),
        "regime_change_probability": (0.0, 0.5),
    }

    initial_regime: Regime = "Bull"
    volatility_multiplier: float = 1.0
    initial_sentiment: float = 0.0
    regime_change_probability: float = 0.05
    enable_agent_trading: bool = False

    @field_validator("initial_regime", mode="before")
    @classmethod
    def _known_regime(cls, value: Any) -> Any:
        if value not in REGIMES:
            logger.warning("%s", ConfigurationError("initial_regime", value, "Bull"))
            return "Bull"
        return value


class EventOptions(_OptionGroup):
    _ranges: ClassVar[dict[str, tuple[float, float]]] = {
        "event_probability": (0.0, 1.0),
        "impact_multiplier": (0.0, 5.0),
        "auto_continue_delay": (1, 60),
    }

    enabled: bool = True
    event_probability: float = 0.08
    impact_multiplier: float = 1.0
    auto_continue: bool = False
    auto_continue_delay: int = 5  # seconds


class AdvancedOptions(_OptionGroup):
    _ranges: ClassVar[dict[str, tuple[float, float]]] = {
        "max_history_points": (0, 10000),
    }

    developer_mode: bool = False
    show_debug_info: bool = False
    max_history_points: int = 0  # 0 = unlimited
    random_seed: Optional[int] = None

    @field_validator("random_seed", mode="before")
    @classmethod
    def _seed_or_none(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("%s", ConfigurationError("random_seed", value, None))
            return None


class GameSettings(BaseModel):
    game: GameOptions = Field(default_factory=GameOptions)
    market: MarketOptions = Field(default_factory=MarketOptions)
    events: EventOptions = Field(default_factory=EventOptions)
    advanced: AdvancedOptions = Field(default_factory=AdvancedOptions)

    def diff(self, other: "GameSettings") -> dict[str, dict[str, dict[str, Any]]]:
        """Per-group changes from self to other, omitting unchanged groups."""
        before = self.model_dump()
        after = other.model_dump()
        changes = {}
        for group, values in after.items():
            group_changes = {
                key: {"from": before[group][key], "to": value}
                for key, value in values.items()
                if before[group][key] != value
            }
            if group_changes:
                changes[group] = group_changes
        return changes

"""
Tradier Stream — Configuration
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field
from typing import List


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TradierConfig:
    bearer_token: str = ""
    session_url: str = "https://api.tradier.com/v1/markets/events/session"
    websocket_url: str = "wss://ws.tradier.com/v1/markets/events"
    session_timeout_sec: float = 30.0


@dataclass
class SubscriptionConfig:
    # Equities or OCC option symbols, e.g. "SPY231220C00462000"
    symbols: List[str] = field(default_factory=lambda: ["SPY", "QQQ"])
    filters: List[str] = field(default_factory=lambda: ["All"])
    linebreak: bool = False
    valid_only: bool = False
    advanced_details: bool = False


@dataclass
class StreamConfig:
    open_timeout_sec: float = 10.0
    close_timeout_sec: float = 5.0


@dataclass
class AppConfig:
    tradier: TradierConfig = field(default_factory=TradierConfig)
    subscription: SubscriptionConfig = field(default_factory=SubscriptionConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    log_level: str = "INFO"
    log_file: str = "data/stream.log"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config with environment variable overrides."""
        config = cls()
        config.tradier.bearer_token = os.getenv("TRADIER_TOKEN", "")
        config.tradier.session_url = os.getenv("TRADIER_SESSION_URL", config.tradier.session_url)
        config.tradier.websocket_url = os.getenv("TRADIER_WS_URL", config.tradier.websocket_url)
        config.subscription.symbols = _env_list("TRADIER_SYMBOLS", config.subscription.symbols)
        config.subscription.filters = _env_list("TRADIER_FILTER", config.subscription.filters)
        config.subscription.linebreak = _env_bool("TRADIER_LINEBREAK")
        config.subscription.valid_only = _env_bool("TRADIER_VALID_ONLY")
        config.subscription.advanced_details = _env_bool("TRADIER_ADVANCED_DETAILS")
        config.stream.open_timeout_sec = float(os.getenv("STREAM_OPEN_TIMEOUT", "10"))
        config.stream.close_timeout_sec = float(os.getenv("STREAM_CLOSE_TIMEOUT", "5"))
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        config.log_file = os.getenv("LOG_FILE", config.log_file)
        return config

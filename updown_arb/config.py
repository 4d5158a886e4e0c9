"""
Configuration module for the Up/Down arbitrage bot.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from dotenv import load_dotenv

from .utils.cost_calculator import parse_decimal

# Load .env file if present
load_dotenv()


@dataclass
class PolymarketConfig:
    """Polymarket API configuration."""
    api_key: str
    api_secret: str
    api_passphrase: str

    # API endpoints
    clob_url: str = "https://clob.polymarket.com"


@dataclass
class WalletConfig:
    """Wallet configuration used to sign orders."""
    private_key: str

    # Chain ID for Polygon Mainnet
    chain_id: int = 137


@dataclass
class MarketsConfig:
    """Markets tracked by the bot. Choosing them is up to the operator."""
    eth_condition_id: str
    btc_condition_id: str


@dataclass
class TradingConfig:
    """Trading parameters and thresholds."""
    min_profit_threshold: Decimal  # Minimum expected profit per unit in USDC
    max_position_size: Decimal  # Maximum USDC per opportunity

    # Loop intervals
    check_interval_ms: int = 1000
    pending_check_interval_seconds: int = 30
    market_check_interval_seconds: int = 5
    stats_interval_seconds: int = 60


@dataclass
class RiskConfig:
    """Risk control settings."""
    simulation_mode: bool  # Dry run - record positions but don't place orders


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str
    json_logging: bool


@dataclass
class Config:
    """Main configuration container."""
    polymarket: PolymarketConfig
    wallet: WalletConfig
    markets: MarketsConfig
    trading: TradingConfig
    risk: RiskConfig
    logging: LogConfig


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    return int(value)


def get_env_decimal(key: str, default: str) -> Decimal:
    """Get decimal environment variable. Malformed values fall back to the default."""
    value = os.getenv(key, default)
    return parse_decimal(value, Decimal(default), name=key)


def load_config() -> Config:
    """Load and validate configuration from environment."""
    simulation_mode = get_env_bool("SIMULATION_MODE", True)  # Default to simulation

    # Credentials are only needed to sign real orders
    live = not simulation_mode

    return Config(
        polymarket=PolymarketConfig(
            api_key=get_env("POLYMARKET_API_KEY", required=live),
            api_secret=get_env("POLYMARKET_API_SECRET", required=live),
            api_passphrase=get_env("POLYMARKET_API_PASSPHRASE", required=live),
            clob_url=get_env("CLOB_URL", "https://clob.polymarket.com", required=False),
        ),
        wallet=WalletConfig(
            private_key=get_env("PRIVATE_KEY", required=live),
            chain_id=get_env_int("CHAIN_ID", 137),
        ),
        markets=MarketsConfig(
            eth_condition_id=get_env("ETH_CONDITION_ID"),
            btc_condition_id=get_env("BTC_CONDITION_ID"),
        ),
        trading=TradingConfig(
            min_profit_threshold=get_env_decimal("MIN_PROFIT_THRESHOLD", "0.01"),
            max_position_size=get_env_decimal("MAX_POSITION_SIZE", "100"),
            check_interval_ms=get_env_int("CHECK_INTERVAL_MS", 1000),
            pending_check_interval_seconds=get_env_int("PENDING_CHECK_INTERVAL_SECONDS", 30),
            market_check_interval_seconds=get_env_int("MARKET_CHECK_INTERVAL_SECONDS", 5),
            stats_interval_seconds=get_env_int("STATS_INTERVAL_SECONDS", 60),
        ),
        risk=RiskConfig(
            simulation_mode=simulation_mode,
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
    )

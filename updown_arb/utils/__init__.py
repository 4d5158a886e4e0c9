# Utilities
from .logger import setup_logging, get_logger, TradeLogger
from .cost_calculator import (
    calculate_position_size,
    calculate_units,
    parse_decimal,
    settlement_payout,
    settlement_profit,
    to_decimal,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "TradeLogger",
    "calculate_position_size",
    "calculate_units",
    "parse_decimal",
    "settlement_payout",
    "settlement_profit",
    "to_decimal",
]

# Market monitoring
from .market_monitor import (
    MarketData,
    MarketMonitor,
    MarketSnapshot,
    TokenPrice,
    classify_outcome,
    current_period,
)

__all__ = [
    "MarketData",
    "MarketMonitor",
    "MarketSnapshot",
    "TokenPrice",
    "classify_outcome",
    "current_period",
]

# Position tracking and settlement
from .trader import CachedMarketData, PendingTrade, SettlementResult, Trader

__all__ = ["CachedMarketData", "PendingTrade", "SettlementResult", "Trader"]

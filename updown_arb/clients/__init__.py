# Polymarket clients
from .clob_client import (
    ClobApiError,
    ClobClient,
    Market,
    MarketToken,
    OrderResult,
    OrderSide,
)

__all__ = ["ClobApiError", "ClobClient", "Market", "MarketToken", "OrderResult", "OrderSide"]

# Arbitrage detection
from .detector import ArbitrageDetector, ArbitrageOpportunity

__all__ = ["ArbitrageDetector", "ArbitrageOpportunity"]

"""
Cross-market arbitrage detector for the ETH/BTC Up/Down pair.
Detects when one outcome in each market costs less than $1.00 combined.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..monitor.market_monitor import MarketSnapshot, TokenPrice
from ..utils.cost_calculator import DOLLAR, DecimalLike, parse_decimal
from ..utils.logger import get_logger

logger = get_logger("detector")

DEFAULT_MIN_PROFIT_THRESHOLD = Decimal("0.01")

# Both legs below this price means both markets are already pricing in
# an adverse move, so the one-winner payout is not reliable.
MIN_LEG_PRICE = Decimal("0.6")


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Profitable pairing of one ETH leg and one BTC leg."""
    eth_leg_price: Decimal
    btc_leg_price: Decimal
    total_cost: Decimal
    expected_profit: Decimal
    eth_token_id: str
    btc_token_id: str
    eth_condition_id: str
    btc_condition_id: str
    eth_label: str = "ETH_UP"
    btc_label: str = "BTC_DOWN"

    @property
    def strategy(self) -> str:
        return f"{self.eth_label}+{self.btc_label}"

    @property
    def profit_percent(self) -> Decimal:
        """Expected profit as a percentage of cost."""
        return self.expected_profit / self.total_cost * 100


class ArbitrageDetector:
    """
    Detector for ETH/BTC Up/Down cross-market arbitrage.

    Buying ETH Up and BTC Down (or ETH Down and BTC Up) pays $1.00 per
    unit for every leg that wins. When the two asks sum to less than
    $1.00 at least one winning leg returns more than the cost.

    Profit = $1.00 - eth_ask - btc_ask
    """

    def __init__(self, min_profit_threshold: DecimalLike = DEFAULT_MIN_PROFIT_THRESHOLD):
        """
        Initialize detector.

        Args:
            min_profit_threshold: Minimum expected profit per unit, in dollars.
                Malformed values fall back to 0.01.
        """
        self.min_profit_threshold = parse_decimal(
            min_profit_threshold,
            DEFAULT_MIN_PROFIT_THRESHOLD,
            name="min_profit_threshold"
        )

    def detect_opportunities(self, snapshot: MarketSnapshot) -> list[ArbitrageOpportunity]:
        """
        Evaluate both directional pairings of a snapshot.

        Args:
            snapshot: Current prices of both markets

        Returns:
            Zero, one or two opportunities
        """
        opportunities = []
        eth = snapshot.eth_market
        btc = snapshot.btc_market

        pairings = (
            (eth.up_token, btc.down_token, "ETH_UP", "BTC_DOWN"),
            (eth.down_token, btc.up_token, "ETH_DOWN", "BTC_UP"),
        )

        for eth_token, btc_token, eth_label, btc_label in pairings:
            if eth_token is None or btc_token is None:
                continue

            opportunity = self.check_arbitrage(
                eth_token,
                btc_token,
                eth.condition_id,
                btc.condition_id,
                eth_label,
                btc_label
            )
            if opportunity:
                logger.debug(
                    "Opportunity found",
                    extra={
                        "strategy": opportunity.strategy,
                        "total_cost": str(opportunity.total_cost),
                        "expected_profit": str(opportunity.expected_profit)
                    }
                )
                opportunities.append(opportunity)

        return opportunities

    def check_arbitrage(
        self,
        eth_token: TokenPrice,
        btc_token: TokenPrice,
        eth_condition_id: str,
        btc_condition_id: str,
        eth_label: str,
        btc_label: str
    ) -> Optional[ArbitrageOpportunity]:
        """Check a single pairing. Returns None when it is not actionable."""
        eth_ask = eth_token.ask_price
        btc_ask = btc_token.ask_price

        if eth_ask is None or btc_ask is None:
            return None

        if eth_ask < MIN_LEG_PRICE and btc_ask < MIN_LEG_PRICE:
            return None

        total_cost = eth_ask + btc_ask
        if total_cost >= DOLLAR:
            return None

        expected_profit = DOLLAR - total_cost
        if expected_profit < self.min_profit_threshold:
            return None

        return ArbitrageOpportunity(
            eth_leg_price=eth_ask,
            btc_leg_price=btc_ask,
            total_cost=total_cost,
            expected_profit=expected_profit,
            eth_token_id=eth_token.token_id,
            btc_token_id=btc_token.token_id,
            eth_condition_id=eth_condition_id,
            btc_condition_id=btc_condition_id,
            eth_label=eth_label,
            btc_label=btc_label
        )

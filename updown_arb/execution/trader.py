"""
Trade tracker for ETH/BTC Up/Down arbitrage.
Sizes and records positions, then settles them when both markets resolve.
"""

import asyncio
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional
import time

from ..arbitrage.detector import ArbitrageOpportunity
from ..clients.clob_client import ClobClient, Market, OrderSide
from ..utils.cost_calculator import (
    DecimalLike,
    calculate_position_size,
    calculate_units,
    parse_decimal,
    settlement_payout,
    settlement_profit,
)
from ..utils.logger import get_logger, TradeLogger

logger = get_logger("trader")
trade_logger = TradeLogger()

DEFAULT_MAX_POSITION_SIZE = Decimal("100")

# Markets close 15 minutes after they open
SETTLEMENT_MIN_AGE_SECONDS = 14 * 60
MARKET_CACHE_TTL_SECONDS = 60
WINNER_SELL_PRICE = 1.0


def trade_key(eth_condition_id: str, btc_condition_id: str) -> str:
    """Key of the pending trade for a pair of markets."""
    return f"{eth_condition_id}_{btc_condition_id}"


@dataclass
class PendingTrade:
    """Accumulated exposure on one pair of markets within a period."""
    eth_token_id: str
    btc_token_id: str
    eth_condition_id: str
    btc_condition_id: str
    units: Decimal
    investment: Decimal
    created_at: float = field(default_factory=time.time)
    fills: int = 1

    @property
    def key(self) -> str:
        return trade_key(self.eth_condition_id, self.btc_condition_id)

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.created_at


@dataclass
class CachedMarketData:
    """Market metadata and when it was fetched."""
    market: Market
    fetched_at: float

    def is_fresh(self, ttl_seconds: float = MARKET_CACHE_TTL_SECONDS) -> bool:
        return time.time() - self.fetched_at < ttl_seconds


@dataclass
class SettlementResult:
    """Outcome of settling one pending trade."""
    trade_key: str
    eth_winner: bool
    btc_winner: bool
    units: Decimal
    investment: Decimal
    payout: Decimal
    profit: Decimal


class Trader:
    """
    Turns opportunities into positions and realizes their profit.

    Repeated opportunities on the same pair of markets accumulate into one
    pending trade. Once the trade is old enough for both markets to have
    closed, their resolution is checked and the binary payoff booked.

    Every shared field has its own lock; no lock is held while waiting on
    the network.
    """

    def __init__(
        self,
        clob_client: ClobClient,
        max_position_size: DecimalLike = DEFAULT_MAX_POSITION_SIZE,
        simulation_mode: bool = True
    ):
        """
        Initialize trader.

        Args:
            clob_client: Source of market status and order placement
            max_position_size: Maximum dollars invested per opportunity
            simulation_mode: Record positions without placing orders
        """
        self.clob_client = clob_client
        self.max_position_size = parse_decimal(
            max_position_size,
            DEFAULT_MAX_POSITION_SIZE,
            name="max_position_size"
        )
        self.simulation_mode = simulation_mode

        self._total_profit = Decimal("0")
        self._profit_lock = asyncio.Lock()

        self._trades_executed = 0
        self._trades_lock = asyncio.Lock()

        self._pending_trades: dict[str, PendingTrade] = {}
        self._pending_lock = asyncio.Lock()

        self._market_cache: dict[str, CachedMarketData] = {}
        self._cache_lock = asyncio.Lock()

    def calculate_position_size(self, opportunity: ArbitrageOpportunity) -> Decimal:
        """Dollars to invest in an opportunity, capped at the configured maximum."""
        return calculate_position_size(self.max_position_size, opportunity.total_cost)

    async def execute_arbitrage(
        self,
        opportunity: ArbitrageOpportunity
    ) -> Optional[PendingTrade]:
        """
        Act on an opportunity.

        In simulation mode the position is only recorded. Otherwise both
        legs are bought concurrently at their asks; a failed leg is logged
        and the position is still recorded as filled.

        Args:
            opportunity: Detected arbitrage opportunity

        Returns:
            Copy of the accumulated pending trade, or None if the
            opportunity could not be sized
        """
        if opportunity.total_cost <= 0:
            logger.warning(
                f"Ignoring opportunity with non-positive cost {opportunity.total_cost}"
            )
            return None

        position_size = self.calculate_position_size(opportunity)
        units = calculate_units(position_size, opportunity.total_cost)

        trade_logger.opportunity_detected(
            strategy=opportunity.strategy,
            total_cost=float(opportunity.total_cost),
            expected_profit=float(opportunity.expected_profit),
            profit_percent=float(opportunity.profit_percent)
        )

        logger.info(
            f"{'SIMULATION' if self.simulation_mode else 'PRODUCTION'}: "
            f"{opportunity.strategy} "
            f"ETH ${opportunity.eth_leg_price} + BTC ${opportunity.btc_leg_price} "
            f"= ${opportunity.total_cost} | "
            f"Position ${float(position_size):.2f} for {float(units):.2f} units"
        )

        if not self.simulation_mode:
            await self._place_entry_orders(opportunity, units)

        trade = await self._record_position(opportunity, units, position_size)

        async with self._trades_lock:
            self._trades_executed += 1
            trades_count = self._trades_executed

        logger.info(
            "Trade executed",
            extra={
                "trade_key": trade.key,
                "investment_usd": float(position_size),
                "expected_profit_usd": float(opportunity.expected_profit * units),
                "trades": trades_count,
                "simulated": self.simulation_mode
            }
        )

        return trade

    async def _place_entry_orders(
        self,
        opportunity: ArbitrageOpportunity,
        units: Decimal
    ) -> None:
        """Buy both legs in parallel."""
        # Sized in units (shares per leg), not the dollar position size.
        # This is the quantity recorded and later sold at settlement. Confirm
        # sizing with the account owner before running live.
        size = float(units)
        orders = [
            (opportunity.eth_token_id, OrderSide.BUY, size, float(opportunity.eth_leg_price)),
            (opportunity.btc_token_id, OrderSide.BUY, size, float(opportunity.btc_leg_price)),
        ]

        results = await self.clob_client.place_orders_parallel(orders)

        for (token_id, side, order_size, price), result in zip(orders, results):
            if result.success:
                trade_logger.order_placed(
                    token_id=token_id,
                    side=side.value,
                    size=order_size,
                    price=price,
                    order_id=result.order_id
                )
            else:
                # The position is recorded regardless of the failed leg
                trade_logger.order_failed(
                    token_id=token_id,
                    side=side.value,
                    error=result.error
                )

    async def _record_position(
        self,
        opportunity: ArbitrageOpportunity,
        units: Decimal,
        position_size: Decimal
    ) -> PendingTrade:
        """Add to the pending trade for this pair of markets, creating it if needed."""
        key = trade_key(opportunity.eth_condition_id, opportunity.btc_condition_id)

        # Lookup, insert and accumulate under one lock acquisition
        async with self._pending_lock:
            existing = self._pending_trades.get(key)
            if existing is not None:
                existing.units += units
                existing.investment += position_size
                existing.fills += 1
                trade = existing
            else:
                trade = PendingTrade(
                    eth_token_id=opportunity.eth_token_id,
                    btc_token_id=opportunity.btc_token_id,
                    eth_condition_id=opportunity.eth_condition_id,
                    btc_condition_id=opportunity.btc_condition_id,
                    units=units,
                    investment=position_size
                )
                self._pending_trades[key] = trade
            snapshot = replace(trade)

        trade_logger.position_recorded(
            trade_key=key,
            units=float(snapshot.units),
            investment=float(snapshot.investment),
            fills=snapshot.fills,
            simulated=self.simulation_mode
        )

        return snapshot

    async def check_pending_trades(self) -> list[SettlementResult]:
        """
        Settle pending trades whose markets have both closed.

        Trades younger than 14 minutes are skipped. Trades whose markets are
        not both closed stay pending for the next sweep.

        Returns:
            Settlements completed in this sweep
        """
        async with self._pending_lock:
            pending_count = len(self._pending_trades)
            due = [
                replace(trade) for trade in self._pending_trades.values()
                if trade.age_seconds() >= SETTLEMENT_MIN_AGE_SECONDS
            ]

        if pending_count:
            logger.debug(
                f"Checking {pending_count} pending trades for market closure "
                f"({len(due)} old enough)"
            )

        settlements = []
        for trade in due:
            try:
                result = await self._settle_trade(trade)
            except Exception as e:
                logger.error(f"Error settling trade {trade.key}: {e}")
                continue
            if result:
                settlements.append(result)

        return settlements

    async def _settle_trade(self, trade: PendingTrade) -> Optional[SettlementResult]:
        """Check one trade's markets and book its profit if both closed."""
        logger.info(
            f"Checking market closure for trade {trade.key} "
            f"(age: {trade.age_seconds() / 60:.1f} minutes)"
        )

        (eth_closed, eth_winner), (btc_closed, btc_winner) = await asyncio.gather(
            self.check_market_result_cached(trade.eth_condition_id, trade.eth_token_id),
            self.check_market_result_cached(trade.btc_condition_id, trade.btc_token_id),
        )

        logger.info(
            "Market status",
            extra={
                "trade_key": trade.key,
                "eth_closed": eth_closed,
                "eth_winner": eth_winner,
                "btc_closed": btc_closed,
                "btc_winner": btc_winner
            }
        )

        if not (eth_closed and btc_closed):
            logger.info(
                f"Markets not both closed yet (ETH: {eth_closed}, BTC: {btc_closed}), "
                f"will check again"
            )
            return None

        settled = await self._claim_trade(trade)
        if settled is None:
            return None

        if not self.simulation_mode:
            await self.sell_winning_tokens(settled, eth_winner, btc_winner)

        payout = settlement_payout(settled.units, eth_winner, btc_winner)
        profit = settlement_profit(settled.units, settled.investment, eth_winner, btc_winner)

        if profit < 0:
            logger.warning(f"LOSS on trade {settled.key}: ${float(-profit):.4f}")

        async with self._profit_lock:
            self._total_profit += profit
            total_profit = self._total_profit

        trade_logger.trade_settled(
            trade_key=settled.key,
            eth_winner=eth_winner,
            btc_winner=btc_winner,
            payout=float(payout),
            profit=float(profit),
            total_profit=float(total_profit)
        )

        return SettlementResult(
            trade_key=settled.key,
            eth_winner=eth_winner,
            btc_winner=btc_winner,
            units=settled.units,
            investment=settled.investment,
            payout=payout,
            profit=profit
        )

    async def _claim_trade(self, observed: PendingTrade) -> Optional[PendingTrade]:
        """
        Remove a trade for settlement.

        Units accumulated after ``observed`` was taken stay pending so they
        are settled on a later sweep.
        """
        async with self._pending_lock:
            current = self._pending_trades.pop(observed.key, None)
            if current is None:
                # Already settled by an overlapping sweep
                return None

            extra_units = current.units - observed.units
            if extra_units > 0:
                self._pending_trades[observed.key] = replace(
                    current,
                    units=extra_units,
                    investment=current.investment - observed.investment,
                    fills=max(current.fills - observed.fills, 1)
                )
                return observed

            return current

    async def check_market_result_cached(
        self,
        condition_id: str,
        token_id: str
    ) -> tuple[bool, bool]:
        """
        Resolve (closed, token_is_winner) for a market.

        Metadata is fetched at most once per 60 seconds per condition id.
        A failed fetch answers (False, False) so the next sweep retries.
        """
        async with self._cache_lock:
            cached = self._market_cache.get(condition_id)
            if cached and cached.is_fresh():
                logger.debug(f"Using cached market data for condition_id: {condition_id}")
                return self._market_result(cached.market, token_id)

        try:
            market = await self.clob_client.get_market(condition_id)
        except Exception as e:
            logger.warning(f"Failed to fetch market {condition_id}: {e}")
            return False, False

        async with self._cache_lock:
            self._market_cache[condition_id] = CachedMarketData(
                market=market,
                fetched_at=time.time()
            )

        return self._market_result(market, token_id)

    @staticmethod
    def _market_result(market: Market, token_id: str) -> tuple[bool, bool]:
        if not market.closed:
            return False, False
        token = market.get_token(token_id)
        return True, bool(token and token.winner)

    async def sell_winning_tokens(
        self,
        trade: PendingTrade,
        eth_winner: bool,
        btc_winner: bool
    ) -> None:
        """Sell each winning leg's full units at $1.00."""
        legs = []
        if eth_winner:
            legs.append(("ETH", trade.eth_token_id))
        if btc_winner:
            legs.append(("BTC", trade.btc_token_id))

        if not legs:
            logger.warning("Both tokens lost - nothing to sell")
            return

        size = float(trade.units)
        results = await self.clob_client.place_orders_parallel([
            (token_id, OrderSide.SELL, size, WINNER_SELL_PRICE)
            for _, token_id in legs
        ])

        for (name, token_id), result in zip(legs, results):
            if result.success:
                logger.info(f"Sold {size:.6f} units of {name} winning token at $1.00")
                trade_logger.order_placed(
                    token_id=token_id,
                    side=OrderSide.SELL.value,
                    size=size,
                    price=WINNER_SELL_PRICE,
                    order_id=result.order_id
                )
            else:
                trade_logger.order_failed(
                    token_id=token_id,
                    side=OrderSide.SELL.value,
                    error=result.error
                )

    async def get_stats(self) -> tuple[Decimal, int]:
        """Get (total realized profit, trades executed)."""
        async with self._profit_lock:
            total = self._total_profit
        async with self._trades_lock:
            trades = self._trades_executed
        return total, trades

    async def get_pending_trades(self) -> list[PendingTrade]:
        """Copies of all pending trades."""
        async with self._pending_lock:
            return [replace(trade) for trade in self._pending_trades.values()]

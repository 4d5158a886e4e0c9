"""
Market monitor for the ETH/BTC 15-minute Up/Down pair.

Tracks which two markets are current, resolves their Up/Down token ids
once per period and assembles concurrent price snapshots.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional
import time

from ..clients.clob_client import ClobClient, Market, OrderSide
from ..utils.logger import get_logger

logger = get_logger("monitor")

PERIOD_SECONDS = 900
TOKEN_REFRESH_SECONDS = 900

UP = "up"
DOWN = "down"


def current_period(now: Optional[float] = None) -> int:
    """Start of the 15-minute period containing ``now`` (unix seconds)."""
    if now is None:
        now = time.time()
    return int(now) // PERIOD_SECONDS * PERIOD_SECONDS


def classify_outcome(outcome: str) -> Optional[str]:
    """
    Classify a token outcome label as Up or Down.

    Labels containing "UP" or equal to "1" are Up, labels containing "DOWN"
    or equal to "0" are Down (case-insensitive). Anything else is None.
    """
    label = outcome.strip().upper()
    if "UP" in label or label == "1":
        return UP
    if "DOWN" in label or label == "0":
        return DOWN
    return None


@dataclass(frozen=True)
class TokenPrice:
    """Priced instrument. Either side may be missing when its book is empty."""
    token_id: str
    ask: Optional[Decimal] = None  # BUY price, cost to buy
    bid: Optional[Decimal] = None  # SELL price, proceeds from selling

    @property
    def ask_price(self) -> Optional[Decimal]:
        return self.ask


@dataclass(frozen=True)
class MarketData:
    """Prices for one tracked market."""
    condition_id: str
    market_name: str
    up_token: Optional[TokenPrice] = None
    down_token: Optional[TokenPrice] = None


@dataclass(frozen=True)
class MarketSnapshot:
    """Prices of both tracked markets at one instant."""
    eth_market: MarketData
    btc_market: MarketData
    timestamp: float


class MarketMonitor:
    """
    Polls prices for the current ETH and BTC markets.

    Token ids are immutable for the life of a market, so they are looked
    up at most once per period. Prices move continuously and are queried
    on every poll.
    """

    def __init__(
        self,
        clob_client: ClobClient,
        eth_market: Market,
        btc_market: Market,
        check_interval_ms: int = 1000
    ):
        """
        Initialize market monitor.

        Args:
            clob_client: Source of market metadata and prices
            eth_market: Current ETH Up/Down market
            btc_market: Current BTC Up/Down market
            check_interval_ms: Sleep between polls
        """
        self.clob_client = clob_client
        self.check_interval = check_interval_ms / 1000

        self._eth_market = eth_market
        self._btc_market = btc_market
        self._markets_lock = asyncio.Lock()

        # side -> {"up": token_id, "down": token_id}
        self._token_ids: dict[str, dict[str, Optional[str]]] = self._empty_token_ids()
        self._last_refresh: Optional[float] = None
        self._tokens_lock = asyncio.Lock()

        self._current_period = current_period()
        self._period_lock = asyncio.Lock()

        self._running = False

    @staticmethod
    def _empty_token_ids() -> dict[str, dict[str, Optional[str]]]:
        return {
            "ETH": {UP: None, DOWN: None},
            "BTC": {UP: None, DOWN: None},
        }

    async def update_markets(self, eth_market: Market, btc_market: Market) -> None:
        """
        Switch to the markets of a new period.

        Clears cached token ids and the refresh clock so the next fetch
        resolves the new markets' tokens.
        """
        logger.info(
            "Updating to new 15-minute period markets",
            extra={
                "eth_market": eth_market.label,
                "eth_condition_id": eth_market.condition_id,
                "btc_market": btc_market.label,
                "btc_condition_id": btc_market.condition_id
            }
        )

        # Fixed acquisition order: markets, tokens, period
        async with self._markets_lock:
            async with self._tokens_lock:
                async with self._period_lock:
                    self._eth_market = eth_market
                    self._btc_market = btc_market
                    self._token_ids = self._empty_token_ids()
                    self._last_refresh = None
                    self._current_period = current_period()

    async def should_discover_new_markets(self) -> bool:
        """True once wall-clock time has entered a new 15-minute period."""
        now_period = current_period()
        async with self._period_lock:
            return now_period != self._current_period

    async def get_current_condition_ids(self) -> tuple[str, str]:
        """Get (eth, btc) condition ids of the tracked markets."""
        async with self._markets_lock:
            return self._eth_market.condition_id, self._btc_market.condition_id

    async def get_token_ids(self) -> dict[str, dict[str, Optional[str]]]:
        """Copy of the cached Up/Down token ids per market."""
        async with self._tokens_lock:
            return {side: dict(ids) for side, ids in self._token_ids.items()}

    async def _needs_token_refresh(self) -> bool:
        async with self._tokens_lock:
            if self._last_refresh is None:
                return True
            return time.time() - self._last_refresh >= TOKEN_REFRESH_SECONDS

    async def refresh_market_tokens(self) -> None:
        """Resolve Up/Down token ids when the cached ones are missing or stale."""
        if not await self._needs_token_refresh():
            return

        eth_condition_id, btc_condition_id = await self.get_current_condition_ids()

        results = await asyncio.gather(
            self.clob_client.get_market(eth_condition_id),
            self.clob_client.get_market(btc_condition_id),
            return_exceptions=True
        )

        resolved: dict[str, dict[str, Optional[str]]] = {}
        all_ok = True
        for side, condition_id, result in zip(
            ("ETH", "BTC"), (eth_condition_id, btc_condition_id), results
        ):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to fetch {side} market {condition_id}: {result}")
                all_ok = False
                continue
            resolved[side] = self._classify_tokens(side, result)

        async with self._markets_lock:
            swapped = (
                self._eth_market.condition_id != eth_condition_id
                or self._btc_market.condition_id != btc_condition_id
            )
            async with self._tokens_lock:
                if swapped:
                    logger.debug("Markets changed during token refresh, discarding result")
                    return
                for side, ids in resolved.items():
                    for outcome, token_id in ids.items():
                        if token_id is not None:
                            self._token_ids[side][outcome] = token_id
                if all_ok:
                    self._last_refresh = time.time()

    @staticmethod
    def _classify_tokens(side: str, market: Market) -> dict[str, Optional[str]]:
        ids: dict[str, Optional[str]] = {UP: None, DOWN: None}
        for token in market.tokens:
            outcome = classify_outcome(token.outcome)
            if outcome is None:
                logger.debug(f"Unclassified {side} token outcome {token.outcome!r}")
                continue
            ids[outcome] = token.token_id
            logger.info(f"{side} {outcome.capitalize()} token_id: {token.token_id}")
        return ids

    async def fetch_market_data(self) -> MarketSnapshot:
        """
        Fetch current prices for both markets.

        Token ids are refreshed first if needed. A slot whose token id is
        unknown, or whose price lookups both failed, is left empty.
        """
        await self.refresh_market_tokens()

        eth_condition_id, btc_condition_id = await self.get_current_condition_ids()
        token_ids = await self.get_token_ids()

        eth_up, eth_down, btc_up, btc_down = await asyncio.gather(
            self.fetch_token_price(token_ids["ETH"][UP], "ETH", "Up"),
            self.fetch_token_price(token_ids["ETH"][DOWN], "ETH", "Down"),
            self.fetch_token_price(token_ids["BTC"][UP], "BTC", "Up"),
            self.fetch_token_price(token_ids["BTC"][DOWN], "BTC", "Down"),
        )

        return MarketSnapshot(
            eth_market=MarketData(
                condition_id=eth_condition_id,
                market_name="ETH",
                up_token=eth_up,
                down_token=eth_down
            ),
            btc_market=MarketData(
                condition_id=btc_condition_id,
                market_name="BTC",
                up_token=btc_up,
                down_token=btc_down
            ),
            timestamp=time.time()
        )

    async def fetch_token_price(
        self,
        token_id: Optional[str],
        market_name: str,
        outcome: str
    ) -> Optional[TokenPrice]:
        """Query both sides of one token's book."""
        if not token_id:
            return None

        buy_result, sell_result = await asyncio.gather(
            self.clob_client.get_price(token_id, OrderSide.BUY),
            self.clob_client.get_price(token_id, OrderSide.SELL),
            return_exceptions=True
        )

        ask = None
        if isinstance(buy_result, BaseException):
            logger.warning(f"Failed to fetch {market_name} {outcome} BUY price: {buy_result}")
        else:
            ask = buy_result

        bid = None
        if isinstance(sell_result, BaseException):
            logger.warning(f"Failed to fetch {market_name} {outcome} SELL price: {sell_result}")
        else:
            bid = sell_result

        if ask is None and bid is None:
            return None

        return TokenPrice(token_id=token_id, ask=ask, bid=bid)

    async def start_monitoring(self, handler: Callable[[MarketSnapshot], Any]) -> None:
        """
        Poll snapshots until stopped.

        Args:
            handler: Called with every snapshot, sync or async
        """
        logger.info(
            "Starting market monitoring",
            extra={"check_interval_seconds": self.check_interval}
        )
        self._running = True

        while self._running:
            try:
                snapshot = await self.fetch_market_data()
            except Exception as e:
                logger.warning(f"Error fetching market data: {e}")
            else:
                logger.debug("Market snapshot updated")
                try:
                    await self._call_handler(handler, snapshot)
                except Exception as e:
                    logger.error(f"Snapshot handler error: {e}")

            await asyncio.sleep(self.check_interval)

    def stop(self) -> None:
        """Stop the polling loop after the current tick."""
        self._running = False

    async def _call_handler(self, handler: Callable, *args) -> None:
        """Call handler, supporting both sync and async callbacks."""
        result = handler(*args)
        if asyncio.iscoroutine(result):
            await result

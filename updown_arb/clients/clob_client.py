"""
CLOB client for Polymarket market metadata, prices and orders.
Public reads go over aiohttp; orders are signed with py-clob-client.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Literal
import time

import aiohttp
from py_clob_client.client import ClobClient as SigningClient
from py_clob_client.clob_types import ApiCreds, OrderArgs, OrderType
from py_clob_client.order_builder.constants import BUY, SELL

from ..utils.cost_calculator import to_decimal
from ..utils.logger import get_logger

logger = get_logger("clob")

DEFAULT_CLOB_URL = "https://clob.polymarket.com"


class ClobApiError(Exception):
    """A CLOB read failed (transport, HTTP status or malformed body)."""


class OrderSide(Enum):
    """Order side enum."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class MarketToken:
    """Outcome token of a market."""
    token_id: str
    outcome: str  # "Up"/"Down", sometimes "1"/"0"
    winner: bool = False
    price: Optional[Decimal] = None

    @classmethod
    def from_api(cls, data: dict) -> "MarketToken":
        price = data.get("price")
        try:
            parsed_price = to_decimal(price) if price is not None else None
        except InvalidOperation:
            parsed_price = None

        return cls(
            token_id=str(data.get("token_id", "")),
            outcome=str(data.get("outcome", "")),
            winner=bool(data.get("winner", False)),
            price=parsed_price
        )


@dataclass
class Market:
    """Binary market identified by its condition id."""
    condition_id: str
    question: str = ""
    slug: str = ""
    tokens: list[MarketToken] = field(default_factory=list)
    closed: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Market":
        """Build a market from the CLOB ``/markets/{condition_id}`` payload."""
        return cls(
            condition_id=str(data.get("condition_id", "")),
            question=data.get("question") or "",
            slug=data.get("market_slug") or "",
            tokens=[MarketToken.from_api(t) for t in data.get("tokens") or []],
            closed=bool(data.get("closed", False))
        )

    @property
    def label(self) -> str:
        """Human readable name for logs."""
        return self.slug or self.question or self.condition_id

    def get_token(self, token_id: str) -> Optional[MarketToken]:
        """Find a token by id."""
        for token in self.tokens:
            if token.token_id == token_id:
                return token
        return None


@dataclass
class OrderResult:
    """Result of an order placement."""
    order_id: str
    success: bool
    status: str
    error: Optional[str] = None
    timestamp: float = 0.0


class ClobClient:
    """
    Async client for the Polymarket CLOB.

    Market metadata and prices come from the public REST endpoints.
    Order placement uses the official py-clob-client for signing and is
    only available when credentials are configured.
    """

    def __init__(
        self,
        host: str = DEFAULT_CLOB_URL,
        api_key: str = "",
        api_secret: str = "",
        api_passphrase: str = "",
        private_key: str = "",
        chain_id: int = 137,  # Polygon Mainnet
        request_timeout_seconds: float = 10.0
    ):
        """
        Initialize CLOB client.

        Args:
            host: CLOB base URL
            api_key: Polymarket API key
            api_secret: Polymarket API secret
            api_passphrase: Polymarket API passphrase
            private_key: Wallet private key used to sign orders
            chain_id: Blockchain chain ID (137 for Polygon)
            request_timeout_seconds: Total timeout for each read request
        """
        self.host = host.rstrip("/")
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_passphrase = api_passphrase
        self.private_key = private_key
        self.chain_id = chain_id
        self.request_timeout_seconds = request_timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None
        self._signer: Optional[SigningClient] = None

    @property
    def can_trade(self) -> bool:
        """Whether signing credentials are configured."""
        return bool(self.private_key and self.api_key)

    async def initialize(self) -> None:
        """Open the HTTP session and, if possible, the order signer."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout_seconds)
            )

        if self.can_trade and not self._signer:
            # Signer creation may do blocking I/O
            loop = asyncio.get_event_loop()
            self._signer = await loop.run_in_executor(None, self._create_signer)
            logger.info("CLOB order signer initialized")

        logger.info("CLOB client initialized", extra={"host": self.host})

    def _create_signer(self) -> SigningClient:
        """Create the underlying py-clob-client instance."""
        return SigningClient(
            host=self.host,
            key=self.private_key,
            chain_id=self.chain_id,
            creds=ApiCreds(
                api_key=self.api_key,
                api_secret=self.api_secret,
                api_passphrase=self.api_passphrase
            )
        )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make a GET request against the CLOB REST API."""
        if not self._session:
            await self.initialize()

        url = f"{self.host}{endpoint}"

        try:
            async with self._session.get(url, params=params) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ClobApiError(f"GET {endpoint} failed: {e}") from e

        if not isinstance(data, dict):
            raise ClobApiError(f"GET {endpoint} returned unexpected body: {data!r}")

        return data

    async def get_market(self, condition_id: str) -> Market:
        """
        Fetch market metadata.

        Args:
            condition_id: Market condition ID

        Returns:
            Market with tokens, closed flag and winner flags

        Raises:
            ClobApiError: On transport or decoding failure
        """
        data = await self._request(f"/markets/{condition_id}")
        market = Market.from_api(data)
        if not market.condition_id:
            market.condition_id = condition_id
        return market

    async def get_price(self, token_id: str, side: OrderSide) -> Decimal:
        """
        Fetch the current price for one side of a token's book.

        Args:
            token_id: Token ID
            side: BUY for the price paid to buy, SELL for the price received

        Returns:
            Price as Decimal

        Raises:
            ClobApiError: On transport or decoding failure
        """
        data = await self._request(
            "/price",
            params={"token_id": token_id, "side": side.value}
        )

        try:
            price = to_decimal(data["price"])
        except (KeyError, InvalidOperation) as e:
            raise ClobApiError(f"Malformed price for {token_id}: {data!r}") from e

        # NaN would poison every comparison made with it
        if not price.is_finite():
            raise ClobApiError(f"Non-finite price for {token_id}: {data!r}")

        return price

    async def place_order(
        self,
        token_id: str,
        side: OrderSide,
        size: float,
        price: float,
        order_type: Literal["GTC", "FOK", "GTD", "FAK"] = "GTC"
    ) -> OrderResult:
        """
        Place a limit order on the CLOB.

        Args:
            token_id: Token ID (asset ID) to trade
            side: BUY or SELL
            size: Order size in shares
            price: Order price (0-1)
            order_type: Order type (GTC, FOK, GTD, FAK)

        Returns:
            OrderResult with order ID and status
        """
        if not self._signer:
            raise RuntimeError("CLOB order signer not initialized")

        logger.debug(
            f"Placing order: {side.value} {size} @ {price} for {token_id}"
        )

        try:
            loop = asyncio.get_event_loop()

            order_args = OrderArgs(
                token_id=token_id,
                price=price,
                size=size,
                side=BUY if side == OrderSide.BUY else SELL
            )

            signed_order = await loop.run_in_executor(
                None,
                lambda: self._signer.create_order(order_args)
            )

            result = await loop.run_in_executor(
                None,
                lambda: self._signer.post_order(
                    signed_order, orderType=getattr(OrderType, order_type)
                )
            )

            order_id = result.get("orderID", "") if isinstance(result, dict) else ""
            success = result.get("success", True) if isinstance(result, dict) else True

            logger.info(
                "Order placed",
                extra={
                    "order_id": order_id,
                    "token_id": token_id,
                    "side": side.value,
                    "size": size,
                    "price": price
                }
            )

            return OrderResult(
                order_id=order_id,
                success=bool(success),
                status="LIVE" if success else "REJECTED",
                error=None if success else str(result.get("errorMsg", "")),
                timestamp=time.time()
            )

        except Exception as e:
            logger.error(f"Failed to place order: {e}")
            return OrderResult(
                order_id="",
                success=False,
                status="FAILED",
                error=str(e),
                timestamp=time.time()
            )

    async def place_orders_parallel(
        self,
        orders: list[tuple[str, OrderSide, float, float]]
    ) -> list[OrderResult]:
        """
        Place multiple orders in parallel.

        Args:
            orders: List of (token_id, side, size, price) tuples

        Returns:
            List of OrderResult for each order, in input order
        """
        tasks = [
            self.place_order(token_id, side, size, price)
            for token_id, side, size, price in orders
        ]

        results = await asyncio.gather(*tasks, return_exceptions=True)

        # Convert exceptions to failed OrderResults
        processed = []
        for result in results:
            if isinstance(result, BaseException):
                processed.append(OrderResult(
                    order_id="",
                    success=False,
                    status="FAILED",
                    error=str(result),
                    timestamp=time.time()
                ))
            else:
                processed.append(result)

        return processed

"""
Tests for the CLOB client.
"""

import json
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from updown_arb.clients.clob_client import (
    ClobApiError,
    ClobClient,
    Market,
    OrderResult,
    OrderSide,
)

MARKET_PAYLOAD = {
    "condition_id": "0xeth",
    "question": "Ethereum Up or Down - 10:15AM ET?",
    "market_slug": "eth-updown-15m-1700000000",
    "closed": True,
    "tokens": [
        {"token_id": "111", "outcome": "Up", "price": 1, "winner": True},
        {"token_id": "222", "outcome": "Down", "price": "0", "winner": False},
    ],
}


@pytest.fixture
def client():
    """Create a read-only client with a mocked transport."""
    client = ClobClient()
    client._request = AsyncMock()
    return client


@pytest.fixture
def trading_client():
    """Create a client with a mocked order signer."""
    client = ClobClient(api_key="key", private_key="0xabc")
    client._signer = MagicMock()
    client._signer.create_order.return_value = "signed-order"
    client._signer.post_order.return_value = {"orderID": "order-123", "success": True}
    return client


class TestMarketParsing:
    """Tests for market payload parsing."""

    def test_from_api(self):
        market = Market.from_api(MARKET_PAYLOAD)

        assert market.condition_id == "0xeth"
        assert market.slug == "eth-updown-15m-1700000000"
        assert market.label == "eth-updown-15m-1700000000"
        assert market.closed is True
        assert [t.token_id for t in market.tokens] == ["111", "222"]
        assert market.tokens[0].winner is True
        assert market.tokens[0].price == Decimal("1")
        assert market.tokens[1].price == Decimal("0")

    def test_missing_fields(self):
        market = Market.from_api({"condition_id": "0xbtc"})

        assert market.tokens == []
        assert market.closed is False
        assert market.label == "0xbtc"

    def test_bad_token_price_ignored(self):
        market = Market.from_api({
            "condition_id": "0xbtc",
            "tokens": [{"token_id": "1", "outcome": "Up", "price": "n/a"}],
        })

        assert market.tokens[0].price is None

    def test_get_token(self):
        market = Market.from_api(MARKET_PAYLOAD)

        assert market.get_token("222").outcome == "Down"
        assert market.get_token("333") is None


class TestReads:
    """Tests for metadata and price reads."""

    @pytest.mark.asyncio
    async def test_get_market(self, client):
        client._request.return_value = MARKET_PAYLOAD

        market = await client.get_market("0xeth")

        client._request.assert_called_once_with("/markets/0xeth")
        assert market.closed is True

    @pytest.mark.asyncio
    async def test_get_market_fills_missing_condition_id(self, client):
        client._request.return_value = {"tokens": []}

        market = await client.get_market("0xbtc")

        assert market.condition_id == "0xbtc"

    @pytest.mark.asyncio
    async def test_get_price(self, client):
        client._request.return_value = {"price": "0.62"}

        price = await client.get_price("111", OrderSide.BUY)

        assert price == Decimal("0.62")
        client._request.assert_called_once_with(
            "/price", params={"token_id": "111", "side": "BUY"}
        )

    @pytest.mark.asyncio
    async def test_get_price_numeric(self, client):
        client._request.return_value = {"price": 0.31}

        assert await client.get_price("222", OrderSide.SELL) == Decimal("0.31")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"price": "abc"}])
    async def test_get_price_malformed(self, client, payload):
        client._request.return_value = payload

        with pytest.raises(ClobApiError):
            await client.get_price("111", OrderSide.BUY)

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, client):
        client._request.side_effect = ClobApiError("GET /price failed")

        with pytest.raises(ClobApiError):
            await client.get_price("111", OrderSide.BUY)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    async def test_get_price_non_finite(self, client, value):
        """Non-finite quotes are rejected like any other malformed price."""
        client._request.return_value = {"price": value}

        with pytest.raises(ClobApiError):
            await client.get_price("111", OrderSide.BUY)


def invalid_json_session() -> MagicMock:
    """Session whose responses claim JSON but carry a broken body."""
    response = MagicMock()
    response.json = AsyncMock(
        side_effect=json.JSONDecodeError("Expecting property name", "{not json", 1)
    )

    session = MagicMock()
    session.get.return_value.__aenter__.return_value = response
    return session


class TestRequest:
    """Tests for response decoding."""

    @pytest.mark.asyncio
    async def test_invalid_json_price(self):
        client = ClobClient()
        client._session = invalid_json_session()

        with pytest.raises(ClobApiError):
            await client.get_price("111", OrderSide.BUY)

    @pytest.mark.asyncio
    async def test_invalid_json_market(self):
        client = ClobClient()
        client._session = invalid_json_session()

        with pytest.raises(ClobApiError):
            await client.get_market("0xeth")

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        response = MagicMock()
        response.json = AsyncMock(return_value=["0.5"])
        session = MagicMock()
        session.get.return_value.__aenter__.return_value = response

        client = ClobClient()
        client._session = session

        with pytest.raises(ClobApiError):
            await client.get_price("111", OrderSide.BUY)


class TestOrders:
    """Tests for order placement."""

    def test_can_trade(self):
        assert not ClobClient().can_trade
        assert ClobClient(api_key="key", private_key="0xabc").can_trade

    @pytest.mark.asyncio
    async def test_place_order_without_signer(self):
        client = ClobClient()

        with pytest.raises(RuntimeError):
            await client.place_order("111", OrderSide.BUY, 10.0, 0.5)

    @pytest.mark.asyncio
    async def test_place_order(self, trading_client):
        result = await trading_client.place_order("111", OrderSide.BUY, 10.0, 0.5)

        assert result.success is True
        assert result.order_id == "order-123"
        assert result.status == "LIVE"

        order_args = trading_client._signer.create_order.call_args[0][0]
        assert order_args.token_id == "111"
        assert order_args.size == 10.0
        assert order_args.price == 0.5
        assert order_args.side == "BUY"
        trading_client._signer.post_order.assert_called_once()

    @pytest.mark.asyncio
    async def test_place_order_rejected(self, trading_client):
        trading_client._signer.post_order.return_value = {
            "success": False,
            "errorMsg": "not enough balance"
        }

        result = await trading_client.place_order("111", OrderSide.SELL, 10.0, 1.0)

        assert result.success is False
        assert result.status == "REJECTED"
        assert result.error == "not enough balance"

    @pytest.mark.asyncio
    async def test_place_order_signer_error(self, trading_client):
        trading_client._signer.create_order.side_effect = Exception("bad key")

        result = await trading_client.place_order("111", OrderSide.BUY, 10.0, 0.5)

        assert result.success is False
        assert result.status == "FAILED"
        assert "bad key" in result.error

    @pytest.mark.asyncio
    async def test_place_orders_parallel_converts_exceptions(self, trading_client):
        trading_client.place_order = AsyncMock(side_effect=[
            OrderResult(order_id="a", success=True, status="LIVE"),
            RuntimeError("signer gone"),
        ])

        results = await trading_client.place_orders_parallel([
            ("111", OrderSide.BUY, 10.0, 0.5),
            ("222", OrderSide.BUY, 10.0, 0.4),
        ])

        assert results[0].success is True
        assert results[1].success is False
        assert results[1].error == "signer gone"

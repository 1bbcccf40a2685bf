"""
Order Service Tests.

============================================================
PURPOSE
============================================================
Tests for order previews and market order placement.

TEST CATEGORIES:
- Preview math: BUY and SELL
- Validation: fail fast with zero network calls
- Placement: accepted, rejected, unknown outcome
- Idempotency keys: fresh per call

============================================================
"""

import asyncio
import uuid
from decimal import Decimal

import aiohttp
import pytest

from conftest import FakeResponse, route_table
from trading_gateway.market_data import MarketDataService
from trading_gateway.order_service import (
    UNKNOWN_OUTCOME_MESSAGE,
    OrderService,
    parse_amount,
    validate_product_id,
)
from trading_gateway.types import OrderOutcome, OrderSide, ValidationError


ORDERS = "/api/v3/brokerage/orders"


def _service(client) -> OrderService:
    return OrderService(client, MarketDataService(client))


def _accepting(order_id: str = "order-1"):
    def respond(body):
        return FakeResponse(200, {
            "success": True,
            "success_response": {"order_id": order_id, "client_order_id": body["client_order_id"]},
        })
    return respond


# ============================================================
# PREVIEW
# ============================================================

class TestPreview:
    """Fee rate 0.5%, applied to quote value."""

    @pytest.mark.asyncio
    async def test_buy_preview(self, make_client):
        client = make_client(route_table({
            "/products/BTC-USD/ticker": FakeResponse(200, {"price": "50000"}),
        }))

        preview = await _service(client).preview("BTC-USD", "buy", "100")

        assert preview.side == OrderSide.BUY
        assert preview.estimated_fee == Decimal("0.5")
        assert preview.net_amount == Decimal("99.5")
        assert preview.estimated_quantity == Decimal("0.00199")
        assert preview.current_price == Decimal("50000")

    @pytest.mark.asyncio
    async def test_sell_preview(self, make_client):
        client = make_client(route_table({
            "/products/BTC-USD/ticker": FakeResponse(200, {"price": "50000"}),
        }))

        preview = await _service(client).preview("BTC-USD", "SELL", "0.002")

        assert preview.quote_amount == Decimal("100")
        assert preview.estimated_fee == Decimal("0.5")
        assert preview.net_amount == Decimal("99.5")
        assert preview.estimated_quantity is None
        assert preview.to_dict()["base_amount"] == "0.002"

    @pytest.mark.asyncio
    async def test_preview_unknown_side(self, make_client):
        client = make_client(route_table({}))

        with pytest.raises(ValidationError):
            await _service(client).preview("BTC-USD", "HOLD", "100")

        assert client._session.calls == []

    def test_preview_places_nothing(self, make_client):
        client = make_client(route_table({}))

        preview = _service(client).compute_preview(
            "ETH-USD", OrderSide.BUY, Decimal("10"), Decimal("2000"),
        )

        assert preview.net_amount == Decimal("9.95")
        assert client._session.calls == []


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:
    """Bad input never reaches the network."""

    @pytest.mark.parametrize("funds", ["-5", "abc", "0", "0.5", "NaN", "Infinity", None, True])
    @pytest.mark.asyncio
    async def test_buy_rejects_bad_funds(self, make_client, funds):
        client = make_client(route_table({ORDERS: _accepting()}))

        with pytest.raises(ValidationError):
            await _service(client).place_buy("BTC-USD", funds)

        assert client._session.calls == []

    @pytest.mark.parametrize("size", ["-1", "", "1e-9"])
    @pytest.mark.asyncio
    async def test_sell_rejects_bad_size(self, make_client, size):
        client = make_client(route_table({ORDERS: _accepting()}))

        with pytest.raises(ValidationError):
            await _service(client).place_sell("BTC-USD", size)

        assert client._session.calls == []

    @pytest.mark.parametrize("product_id", ["", "BTC", "BTC-", "BTC-USD-X"])
    def test_bad_product_ids(self, product_id):
        with pytest.raises(ValidationError):
            validate_product_id(product_id)

    def test_product_id_normalized(self):
        assert validate_product_id(" btc-usd ") == "BTC-USD"

    def test_parse_amount_field_name(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_amount("x", Decimal("1"), "funds")

        assert exc_info.value.field_name == "funds"


# ============================================================
# PLACEMENT
# ============================================================

class TestPlacement:
    """Order outcomes."""

    @pytest.mark.asyncio
    async def test_buy_accepted(self, make_client):
        client = make_client(route_table({ORDERS: _accepting("abc-123")}))

        result = await _service(client).place_buy("btc-usd", "25")

        assert result.outcome == OrderOutcome.ACCEPTED
        assert result.success is True
        assert result.order_id == "abc-123"
        body = client._session.calls[0]["json"]
        assert body["product_id"] == "BTC-USD"
        assert body["side"] == "BUY"
        assert body["order_configuration"] == {"market_market_ioc": {"quote_size": "25"}}
        assert str(uuid.UUID(body["client_order_id"])) == result.client_order_id

    @pytest.mark.asyncio
    async def test_sell_uses_base_size(self, make_client):
        client = make_client(route_table({ORDERS: _accepting()}))

        await _service(client).place_sell("ETH-USD", "0.5")

        body = client._session.calls[0]["json"]
        assert body["side"] == "SELL"
        assert body["order_configuration"] == {"market_market_ioc": {"base_size": "0.5"}}

    @pytest.mark.asyncio
    async def test_rejected_in_2xx_body(self, make_client):
        client = make_client(route_table({ORDERS: FakeResponse(200, {
            "success": False,
            "error_response": {"error": "INSUFFICIENT_FUND", "message": "Insufficient balance"},
        })}))

        result = await _service(client).place_buy("BTC-USD", "25")

        assert result.outcome == OrderOutcome.REJECTED
        assert result.success is False
        assert result.error_message == "Insufficient balance"

    @pytest.mark.asyncio
    async def test_rejected_by_status(self, make_client):
        client = make_client(route_table({ORDERS: FakeResponse(400, {"error": "bad request"})}))

        result = await _service(client).place_sell("BTC-USD", "1")

        assert result.success is False
        assert result.error_message == "bad request"

    @pytest.mark.asyncio
    async def test_rejected_generic_message(self, make_client):
        client = make_client(route_table({ORDERS: FakeResponse(200, {"success": False})}))

        result = await _service(client).place_buy("BTC-USD", "25")

        assert result.success is False
        assert result.error_message

    @pytest.mark.asyncio
    async def test_timeout_is_unknown(self, make_client):
        client = make_client(route_table({ORDERS: asyncio.TimeoutError()}))

        result = await _service(client).place_buy("BTC-USD", "25")

        assert result.outcome == OrderOutcome.UNKNOWN
        assert result.success is None
        assert result.error_message == UNKNOWN_OUTCOME_MESSAGE
        assert len(client._session.calls) == 1

    @pytest.mark.asyncio
    async def test_disconnect_after_send_is_unknown(self, make_client):
        client = make_client(route_table({ORDERS: aiohttp.ServerDisconnectedError()}))

        result = await _service(client).place_sell("BTC-USD", "1")

        assert result.outcome == OrderOutcome.UNKNOWN
        assert len(client._session.calls) == 1


class TestIdempotencyKeys:
    """Identical calls carry distinct client order IDs."""

    @pytest.mark.asyncio
    async def test_distinct_keys(self, make_client):
        client = make_client(route_table({ORDERS: _accepting()}))
        service = _service(client)

        first = await service.place_buy("BTC-USD", "10")
        second = await service.place_buy("BTC-USD", "10")

        sent = [c["json"]["client_order_id"] for c in client._session.calls]
        assert sent[0] != sent[1]
        assert first.client_order_id != second.client_order_id

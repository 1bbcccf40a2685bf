"""
Portfolio and Account Tests.

============================================================
PURPOSE
============================================================
Tests for fill replay, ROI and account listings.

TEST CATEGORIES:
- Replay: weighted average cost basis
- ROI: per-asset and totals, cash excluded
- Accounts: paging, wallet valuation
- Fills: normalization and ordering

============================================================
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FakeResponse, route_table
from trading_gateway.accounts import AccountService, parse_fill, parse_trade_time
from trading_gateway.market_data import MarketDataService
from trading_gateway.portfolio import PortfolioROICalculator, replay_fills
from trading_gateway.types import Fill, OrderSide


ACCOUNTS = "/api/v3/brokerage/accounts"
FILLS = "/api/v3/brokerage/orders/historical/fills"


def _fill(side: OrderSide, size: str, price: str, product_id: str = "BTC-USD", commission: str = "0") -> Fill:
    return Fill(
        product_id=product_id,
        side=side,
        size=Decimal(size),
        price=Decimal(price),
        commission=Decimal(commission),
    )


def _account(currency: str, available: str, hold: str = "0") -> dict:
    return {
        "uuid": f"{currency.lower()}-uuid",
        "name": f"{currency} Wallet",
        "currency": currency,
        "available_balance": {"value": available, "currency": currency},
        "hold": {"value": hold, "currency": currency},
        "type": "ACCOUNT_TYPE_CRYPTO",
    }


def _raw_fill(side: str, size: str, price: str, trade_time: str, product_id: str = "BTC-USD", **extra) -> dict:
    raw = {
        "trade_id": f"t-{trade_time}",
        "product_id": product_id,
        "side": side,
        "size": size,
        "price": price,
        "commission": "0",
        "trade_time": trade_time,
    }
    raw.update(extra)
    return raw


# ============================================================
# REPLAY
# ============================================================

class TestReplayFills:
    """Average-cost replay."""

    def test_buy_buy_sell(self):
        aggregates = replay_fills([
            _fill(OrderSide.BUY, "1", "100"),
            _fill(OrderSide.BUY, "1", "200"),
            _fill(OrderSide.SELL, "1", "1000"),
        ])

        btc = aggregates["BTC"]
        assert btc.invested == Decimal("150")
        assert btc.quantity == Decimal("1")

    def test_commission_adds_to_basis(self):
        aggregates = replay_fills([_fill(OrderSide.BUY, "2", "10", commission="1.5")])

        assert aggregates["BTC"].invested == Decimal("21.5")

    def test_sell_with_no_quantity(self):
        aggregates = replay_fills([_fill(OrderSide.SELL, "1", "100")])

        assert aggregates["BTC"].invested == Decimal("0")
        assert aggregates["BTC"].quantity == Decimal("-1")

    def test_per_symbol(self):
        aggregates = replay_fills([
            _fill(OrderSide.BUY, "1", "100", "BTC-USD"),
            _fill(OrderSide.BUY, "3", "10", "ETH-USD"),
        ])

        assert set(aggregates) == {"BTC", "ETH"}
        assert aggregates["ETH"].invested == Decimal("30")


class TestAssetROI:

    def test_single_asset(self):
        replayed = replay_fills([
            _fill(OrderSide.BUY, "1", "100"),
            _fill(OrderSide.BUY, "1", "200"),
            _fill(OrderSide.SELL, "1", "1000"),
        ])["BTC"]

        asset = PortfolioROICalculator.asset_roi("BTC", Decimal("1"), Decimal("1000"), replayed)

        assert asset.current_value == Decimal("1000")
        assert asset.profit_loss == Decimal("850")
        assert asset.roi_percent.quantize(Decimal("0.01")) == Decimal("566.67")

    def test_zero_invested(self):
        asset = PortfolioROICalculator.asset_roi("ETH", Decimal("2"), Decimal("10"))

        assert asset.roi_percent == 0
        assert asset.profit_loss == Decimal("20")


# ============================================================
# COMPUTE ROI
# ============================================================

class TestComputeROI:
    """End-to-end ROI over fake exchange responses."""

    @pytest.mark.asyncio
    async def test_report(self, make_client):
        client = make_client(route_table({
            FILLS: FakeResponse(200, {"fills": [
                # newest first, as the exchange returns them
                _raw_fill("SELL", "1", "1000", "2024-03-01T00:00:00Z"),
                _raw_fill("BUY", "1", "200", "2024-02-01T00:00:00Z"),
                _raw_fill("BUY", "1", "100", "2024-01-01T00:00:00.123456789Z"),
            ], "cursor": ""}),
            ACCOUNTS: FakeResponse(200, {"accounts": [
                _account("BTC", "1"),
                _account("USD", "500"),
                _account("ETH", "0"),
            ], "has_next": False}),
            "/products/BTC-USD/ticker": FakeResponse(200, {"price": "1000"}),
        }))
        market_data = MarketDataService(client)
        calculator = PortfolioROICalculator(AccountService(client, market_data), market_data)

        report = await calculator.compute_roi()

        assert [a.symbol for a in report.assets] == ["BTC"]
        assert report.total_invested == Decimal("150")
        assert report.current_value == Decimal("1000")
        assert report.profit_loss == Decimal("850")
        assert report.roi_percent.quantize(Decimal("0.01")) == Decimal("566.67")

    @pytest.mark.asyncio
    async def test_unpriced_asset_left_out(self, make_client):
        client = make_client(route_table({
            FILLS: FakeResponse(200, {"fills": []}),
            ACCOUNTS: FakeResponse(200, {"accounts": [_account("XYZ", "3")]}),
        }))
        market_data = MarketDataService(client)
        calculator = PortfolioROICalculator(AccountService(client, market_data), market_data)

        report = await calculator.compute_roi()

        assert report.assets == []
        assert report.roi_percent == 0


# ============================================================
# ACCOUNTS
# ============================================================

class TestAccounts:

    @pytest.mark.asyncio
    async def test_pages_with_cursor(self, make_client):
        pages = iter([
            FakeResponse(200, {"accounts": [_account("BTC", "1")], "has_next": True, "cursor": "c2"}),
            FakeResponse(200, {"accounts": [_account("ETH", "2", "1")], "has_next": False, "cursor": ""}),
        ])
        client = make_client(route_table({ACCOUNTS: lambda body: next(pages)}))

        accounts = await AccountService(client).list_accounts()

        assert [a.currency for a in accounts] == ["BTC", "ETH"]
        assert accounts[1].balance == Decimal("3")
        urls = [c["url"] for c in client._session.calls]
        assert "limit=250" in urls[0]
        assert "cursor=c2" in urls[1]

    @pytest.mark.asyncio
    async def test_wallet_valuation(self, make_client):
        client = make_client(route_table({
            ACCOUNTS: FakeResponse(200, {"accounts": [
                _account("BTC", "0.5"),
                _account("USDC", "100"),
            ]}),
            "/products/BTC-USD/ticker": FakeResponse(200, {"price": "40000"}),
        }))
        service = AccountService(client, MarketDataService(client))

        wallet = await service.get_wallet()

        values = {a.currency: a.usd_value for a in wallet.accounts}
        assert values["BTC"] == Decimal("20000")
        assert values["USDC"] == Decimal("100")
        assert wallet.total_usd_value == Decimal("20100")
        assert wallet.to_dict()["accounts"][0]["uuid"] == "btc-uuid"


class TestFills:

    def test_size_in_quote_converted(self):
        fill = parse_fill(_raw_fill("BUY", "100", "50000", "2024-01-01T00:00:00Z", size_in_quote=True))

        assert fill.size == Decimal("0.002")

    def test_unusable_records_dropped(self):
        assert parse_fill(_raw_fill("HOLD", "1", "1", "2024-01-01T00:00:00Z")) is None
        assert parse_fill(_raw_fill("BUY", "x", "1", "2024-01-01T00:00:00Z")) is None

    def test_trade_time_nanoseconds(self):
        parsed = parse_trade_time("2024-01-01T12:30:00.123456789Z")

        assert parsed == datetime(2024, 1, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_sorted_oldest_first(self, make_client):
        client = make_client(route_table({
            FILLS: FakeResponse(200, {"fills": [
                _raw_fill("SELL", "1", "3", "2024-03-01T00:00:00Z"),
                _raw_fill("BUY", "1", "1", "2024-01-01T00:00:00Z"),
                _raw_fill("BUY", "1", "2", "2024-02-01T00:00:00Z"),
            ]}),
        }))

        fills = await AccountService(client).list_fills()

        assert [f.price for f in fills] == [Decimal("1"), Decimal("2"), Decimal("3")]

    @pytest.mark.asyncio
    async def test_same_time_fills_replay_in_execution_order(self, make_client):
        client = make_client(route_table({
            FILLS: FakeResponse(200, {"fills": [
                _raw_fill("SELL", "1", "1000", "2024-02-01T00:00:00Z", trade_id="t-3"),
                _raw_fill("BUY", "1", "200", "2024-02-01T00:00:00Z", trade_id="t-2"),
                _raw_fill("BUY", "1", "100", "2024-01-01T00:00:00Z", trade_id="t-1"),
            ]}),
        }))

        fills = await AccountService(client).list_fills()

        assert [f.trade_id for f in fills] == ["t-1", "t-2", "t-3"]
        btc = replay_fills(fills)["BTC"]
        assert btc.invested == Decimal("150")
        assert btc.quantity == Decimal("1")

"""
Trading Gateway - Portfolio ROI.

============================================================
PURPOSE
============================================================
Rebuilds per-asset cost basis from fill history and compares
it with current holdings at current prices.

REPLAY RULES (fills oldest first, per base symbol):
    BUY:  invested += size * price + commission
          quantity += size
    SELL: avg = invested / quantity (0 when quantity is 0)
          invested -= size * avg
          quantity -= size

Only assets with a nonzero exchange balance are reported.
Cash currencies are never treated as investments.

============================================================
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .accounts import AccountService
from .market_data import MarketDataService
from .types import (
    AssetROI,
    Fill,
    InvestmentAggregate,
    OrderSide,
    ROIReport,
)


logger = logging.getLogger(__name__)


def replay_fills(fills: Iterable[Fill]) -> Dict[str, InvestmentAggregate]:
    """
    Replay fills into per-symbol cost basis.

    Fills must already be in chronological order.
    """
    aggregates: Dict[str, InvestmentAggregate] = {}

    for fill in fills:
        agg = aggregates.setdefault(fill.base_symbol, InvestmentAggregate())

        if fill.side == OrderSide.BUY:
            agg.invested += fill.size * fill.price + fill.commission
            agg.quantity += fill.size
        else:
            avg = agg.average_cost
            agg.invested -= fill.size * avg
            agg.quantity -= fill.size

    return aggregates


def roi_percent(profit_loss: Decimal, invested: Decimal) -> Decimal:
    if invested > 0:
        return profit_loss / invested * 100
    return Decimal("0")


class PortfolioROICalculator:
    """Portfolio-wide and per-asset ROI."""

    def __init__(self, accounts: AccountService, market_data: MarketDataService):
        self._accounts = accounts
        self._market_data = market_data

    async def compute_roi(self) -> ROIReport:
        """
        Compute ROI from full fill history and current balances.

        Raises:
            GatewayError: If accounts or fills cannot be fetched
        """
        fills = await self._accounts.list_fills()
        aggregates = replay_fills(fills)

        cash = set(self._accounts.cash_currencies)
        held = [
            a for a in await self._accounts.list_accounts()
            if a.balance != 0 and a.currency not in cash
        ]

        prices = await self._market_data.get_prices([a.currency for a in held]) if held else {}

        report = ROIReport()
        for account in held:
            price_info = prices.get(account.currency)
            if price_info is None:
                logger.warning(f"No price for {account.currency}; left out of ROI")
                continue

            agg = aggregates.get(account.currency) or InvestmentAggregate()
            asset = self.asset_roi(account.currency, account.balance, price_info.price, agg)
            report.assets.append(asset)
            report.total_invested += asset.invested
            report.current_value += asset.current_value

        report.profit_loss = report.current_value - report.total_invested
        report.roi_percent = roi_percent(report.profit_loss, report.total_invested)

        logger.info(
            f"ROI over {len(report.assets)} assets from {len(fills)} fills: "
            f"{report.roi_percent:.2f}%"
        )
        return report

    @staticmethod
    def asset_roi(
        symbol: str,
        balance: Decimal,
        price: Decimal,
        aggregate: Optional[InvestmentAggregate] = None,
    ) -> AssetROI:
        """ROI for one asset given its balance, price and replayed basis."""
        aggregate = aggregate or InvestmentAggregate()
        current_value = balance * price
        profit_loss = current_value - aggregate.invested
        return AssetROI(
            symbol=symbol,
            invested=aggregate.invested,
            quantity=balance,
            current_price=price,
            current_value=current_value,
            profit_loss=profit_loss,
            roi_percent=roi_percent(profit_loss, aggregate.invested),
        )

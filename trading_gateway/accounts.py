"""
Trading Gateway - Account Service.

============================================================
PURPOSE
============================================================
Read-only views of exchange account state:
- Accounts (balances per currency), with USD valuation
- Fill history, normalized and sorted oldest first

Both listings are paged by the exchange via cursor.

============================================================
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .client import AuthenticatedRequestClient, build_path
from .config import PortfolioConfig
from .market_data import MarketDataService, to_decimal
from .types import (
    ExchangeAccount,
    Fill,
    OrderSide,
    WalletSnapshot,
    ValidationError,
)


logger = logging.getLogger(__name__)


def parse_trade_time(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 trade time; None when absent or malformed."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat accepts at most 6 fractional digits
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6]}{rest}" if digits else f"{head}{rest}"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable trade time: {value!r}")
        return None


def _balance_value(raw: Any) -> Decimal:
    if isinstance(raw, dict):
        raw = raw.get("value")
    return to_decimal(raw) or Decimal("0")


def parse_account(raw: Dict[str, Any]) -> ExchangeAccount:
    """Normalize one brokerage account record."""
    return ExchangeAccount(
        id=raw.get("uuid", ""),
        display_name=raw.get("name", ""),
        currency=(raw.get("currency") or "").upper(),
        available_balance=_balance_value(raw.get("available_balance")),
        held_balance=_balance_value(raw.get("hold")),
        account_type=raw.get("type", ""),
    )


def parse_fill(raw: Dict[str, Any]) -> Optional[Fill]:
    """
    Normalize one fill record.

    When size_in_quote is set the reported size is quote currency
    and is converted to base at the fill price.

    Returns:
        Fill, or None when the record lacks a usable side, size or price
    """
    try:
        side = OrderSide.parse(raw.get("side"))
    except ValidationError:
        return None

    size = to_decimal(raw.get("size"))
    price = to_decimal(raw.get("price"))
    if size is None or price is None or price <= 0:
        return None

    if raw.get("size_in_quote"):
        size = size / price

    return Fill(
        product_id=(raw.get("product_id") or "").upper(),
        side=side,
        size=size,
        price=price,
        commission=to_decimal(raw.get("commission")) or Decimal("0"),
        trade_time=parse_trade_time(raw.get("trade_time")),
        trade_id=raw.get("trade_id", ""),
    )


def _sort_key(fill: Fill):
    # Missing times sort first so they cannot reorder dated history
    return (fill.trade_time is not None, fill.trade_time.timestamp() if fill.trade_time else 0.0)


class AccountService:
    """Accounts and fills from the brokerage API."""

    def __init__(
        self,
        client: AuthenticatedRequestClient,
        market_data: Optional[MarketDataService] = None,
        config: Optional[PortfolioConfig] = None,
    ):
        self._client = client
        self._market_data = market_data
        self._config = config or client.config.portfolio

    @property
    def cash_currencies(self) -> List[str]:
        return [c.upper() for c in self._config.cash_currencies]

    async def list_accounts(self) -> List[ExchangeAccount]:
        """All brokerage accounts, across pages."""
        accounts: List[ExchangeAccount] = []
        cursor: Optional[str] = None

        for _ in range(self._config.max_pages):
            params = {"limit": self._config.page_limit}
            if cursor:
                params["cursor"] = cursor
            response = await self._client.request(
                "GET",
                self._client.config.endpoints.brokerage_path(build_path("/accounts", params)),
                operation="list_accounts",
            )
            data = response.data or {}
            accounts.extend(parse_account(a) for a in data.get("accounts") or [])

            cursor = data.get("cursor")
            if not data.get("has_next") or not cursor:
                break
        else:
            logger.warning(f"Account listing stopped after {self._config.max_pages} pages")

        logger.debug(f"Loaded {len(accounts)} accounts")
        return accounts

    async def list_fills(self) -> List[Fill]:
        """Full fill history, oldest first."""
        fills: List[Fill] = []
        skipped = 0
        cursor: Optional[str] = None

        for _ in range(self._config.max_pages):
            params = {"limit": self._config.page_limit}
            if cursor:
                params["cursor"] = cursor
            response = await self._client.request(
                "GET",
                self._client.config.endpoints.brokerage_path(build_path("/orders/historical/fills", params)),
                operation="list_fills",
            )
            data = response.data or {}
            for raw in data.get("fills") or []:
                fill = parse_fill(raw)
                if fill is None:
                    skipped += 1
                else:
                    fills.append(fill)

            cursor = data.get("cursor")
            if not cursor:
                break
        else:
            logger.warning(f"Fill listing stopped after {self._config.max_pages} pages")

        if skipped:
            logger.warning(f"Skipped {skipped} unusable fill records")

        # Pages arrive newest first; reverse so the stable sort keeps
        # same-timestamp fills in execution order
        fills.reverse()
        fills.sort(key=_sort_key)
        return fills

    async def get_wallet(self) -> WalletSnapshot:
        """Accounts with USD valuation at current prices."""
        accounts = await self.list_accounts()
        cash = set(self.cash_currencies)

        to_price = sorted({
            a.currency for a in accounts
            if a.balance > 0 and a.currency not in cash
        })
        prices = {}
        if to_price and self._market_data is not None:
            prices = await self._market_data.get_prices(to_price)

        total = Decimal("0")
        for account in accounts:
            if account.currency in cash:
                account.usd_value = account.balance
            elif account.currency in prices:
                account.usd_value = account.balance * prices[account.currency].price
            total += account.usd_value

        return WalletSnapshot(accounts=accounts, total_usd_value=total)


"""
Trading Gateway - Market Data Service.

============================================================
PURPOSE
============================================================
Current price, 24h statistics and estimated market cap per
symbol, from the exchange's public endpoints.

LOOKUP CHAIN (first success wins, each call rate limited):
1. StatsAndTickerLookup - ticker price + 24h open/high/low/volume
2. TickerLookup         - ticker price + volume
3. SpotPriceLookup      - bare spot price

A symbol that fails all three is omitted. Partial results are
valid: this is display aggregation, not a transaction.

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .client import ExchangeHttpClient
from .config import MarketDataConfig
from .types import PriceInfo, ProductInfo, GatewayError, ExchangeApiError


logger = logging.getLogger(__name__)


# ============================================================
# MARKET CAP ESTIMATION
# ============================================================

# Approximate circulating supply. Not authoritative.
CIRCULATING_SUPPLY: Dict[str, Decimal] = {
    "BTC": Decimal("19600000"),
    "ETH": Decimal("120000000"),
    "SOL": Decimal("430000000"),
    "ADA": Decimal("35000000000"),
    "XRP": Decimal("55000000000"),
    "DOT": Decimal("1400000000"),
    "AVAX": Decimal("360000000"),
    "MATIC": Decimal("10000000000"),
    "LINK": Decimal("600000000"),
    "UNI": Decimal("1000000000"),
    "DOGE": Decimal("142000000000"),
    "SHIB": Decimal("589000000000000"),
    "LTC": Decimal("74000000"),
    "BCH": Decimal("19600000"),
    "ATOM": Decimal("380000000"),
    "ALGO": Decimal("8200000000"),
    "FIL": Decimal("500000000"),
    "NEAR": Decimal("1100000000"),
    "APT": Decimal("400000000"),
    "ARB": Decimal("3300000000"),
    "OP": Decimal("1100000000"),
    "SUI": Decimal("2700000000"),
    "SEI": Decimal("3800000000"),
    "INJ": Decimal("90000000"),
    "TIA": Decimal("200000000"),
    "PEPE": Decimal("420690000000000"),
    "WIF": Decimal("1000000000"),
    "BONK": Decimal("68000000000000"),
    "ICP": Decimal("500000000"),
    "HBAR": Decimal("35000000000"),
    "VET": Decimal("73000000000"),
    "XLM": Decimal("28000000000"),
    "TRX": Decimal("90000000000"),
    "FTM": Decimal("2800000000"),
    "AAVE": Decimal("15000000"),
    "MKR": Decimal("1000000"),
    "CRV": Decimal("1300000000"),
    "GRT": Decimal("9500000000"),
    "STX": Decimal("1400000000"),
    "HNT": Decimal("160000000"),
    "XTZ": Decimal("950000000"),
    "FLOW": Decimal("1500000000"),
    "ZEC": Decimal("16000000"),
    "DASH": Decimal("11000000"),
    "ETC": Decimal("144000000"),
    "EOS": Decimal("1100000000"),
    "XMR": Decimal("18400000"),
}

DEFAULT_CIRCULATING_SUPPLY = Decimal("100000000")


def estimate_market_cap(symbol: str, price: Decimal) -> Decimal:
    """price * approximate circulating supply."""
    return price * CIRCULATING_SUPPLY.get(symbol.upper(), DEFAULT_CIRCULATING_SUPPLY)


def calculate_change_percent(price: Decimal, open_24h: Optional[Decimal]) -> Decimal:
    """Percent change vs. 24h open; 0 when open is unknown or zero."""
    if not open_24h:
        return Decimal("0")
    return (price - open_24h) / open_24h * 100


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse an exchange numeric string; None when absent or invalid."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def to_price(value: Any) -> Optional[Decimal]:
    """Parse a price; None unless strictly positive."""
    price = to_decimal(value)
    if price is None or price <= 0:
        return None
    return price


# ============================================================
# LOOKUP STRATEGIES
# ============================================================

class PriceLookup(ABC):
    """One way of pricing a product."""

    name: str = ""

    @abstractmethod
    async def fetch(
        self,
        client: ExchangeHttpClient,
        symbol: str,
        product_id: str,
    ) -> Optional[PriceInfo]:
        """
        Price a product.

        Returns:
            PriceInfo, or None when the response is unusable

        Raises:
            GatewayError: On HTTP failure
        """
        pass


class StatsAndTickerLookup(PriceLookup):
    """Ticker price with 24h stats."""

    name = "stats+ticker"

    async def fetch(self, client, symbol, product_id):
        base = client.config.endpoints.exchange_url
        stats, ticker = await asyncio.gather(
            client.public_request("GET", f"{base}/products/{product_id}/stats", operation="get_stats"),
            client.public_request("GET", f"{base}/products/{product_id}/ticker", operation="get_ticker"),
        )

        price = to_price((ticker.data or {}).get("price"))
        if price is None:
            return None

        stats_data = stats.data or {}
        volume = to_decimal(stats_data.get("volume"))
        open_24h = to_decimal(stats_data.get("open"))

        return PriceInfo(
            symbol=symbol,
            price=price,
            currency=product_id.split("-")[-1],
            volume_24h=volume * price if volume is not None else None,
            open_24h=open_24h,
            high_24h=to_decimal(stats_data.get("high")),
            low_24h=to_decimal(stats_data.get("low")),
            change_percent_24h=calculate_change_percent(price, open_24h),
            source=self.name,
        )


class TickerLookup(PriceLookup):
    """Ticker only."""

    name = "ticker"

    async def fetch(self, client, symbol, product_id):
        base = client.config.endpoints.exchange_url
        ticker = await client.public_request(
            "GET", f"{base}/products/{product_id}/ticker", operation="get_ticker",
        )

        data = ticker.data or {}
        price = to_price(data.get("price"))
        if price is None:
            return None

        volume = to_decimal(data.get("volume"))
        open_24h = to_decimal(data.get("open_24h"))

        return PriceInfo(
            symbol=symbol,
            price=price,
            currency=product_id.split("-")[-1],
            volume_24h=volume * price if volume is not None else None,
            open_24h=open_24h,
            high_24h=to_decimal(data.get("high_24h")),
            low_24h=to_decimal(data.get("low_24h")),
            change_percent_24h=calculate_change_percent(price, open_24h),
            source=self.name,
        )


class SpotPriceLookup(PriceLookup):
    """Bare spot price."""

    name = "spot"

    async def fetch(self, client, symbol, product_id):
        base = client.config.endpoints.api_url
        spot = await client.public_request(
            "GET", f"{base}/v2/prices/{product_id}/spot", operation="get_spot_price",
        )

        data = (spot.data or {}).get("data") or {}
        price = to_price(data.get("amount"))
        if price is None:
            return None

        return PriceInfo(
            symbol=symbol,
            price=price,
            currency=data.get("currency") or product_id.split("-")[-1],
            source=self.name,
        )


DEFAULT_LOOKUPS: Tuple[PriceLookup, ...] = (
    StatsAndTickerLookup(),
    TickerLookup(),
    SpotPriceLookup(),
)


# ============================================================
# SERVICE
# ============================================================

class MarketDataService:
    """
    Price aggregation over the lookup chain.

    Symbols fan out concurrently in batches; every HTTP call
    still passes the client's single rate limiter.
    """

    def __init__(
        self,
        client: ExchangeHttpClient,
        config: Optional[MarketDataConfig] = None,
        lookups: Optional[Iterable[PriceLookup]] = None,
    ):
        self._client = client
        self._config = config or client.config.market_data
        self._lookups: List[PriceLookup] = list(lookups) if lookups is not None else list(DEFAULT_LOOKUPS)

    def product_id(self, symbol: str) -> str:
        return f"{symbol.upper()}-{self._config.quote_currency}"

    async def _lookup(self, symbol: str, product_id: str) -> Optional[PriceInfo]:
        for lookup in self._lookups:
            try:
                info = await lookup.fetch(self._client, symbol, product_id)
            except GatewayError as e:
                logger.debug(f"{lookup.name} failed for {product_id}: {e}")
                continue
            except (KeyError, TypeError, AttributeError, InvalidOperation) as e:
                logger.debug(f"{lookup.name} returned unusable data for {product_id}: {e!r}")
                continue

            if info is None:
                continue

            info.market_cap = estimate_market_cap(symbol, info.price)
            return info

        logger.warning(f"No price available for {product_id}")
        return None

    async def get_prices(self, symbols: Optional[Iterable[str]] = None) -> Dict[str, PriceInfo]:
        """
        Price a set of symbols.

        Args:
            symbols: Base symbols; None means the configured watchlist

        Returns:
            Mapping of symbol to PriceInfo, failed symbols omitted
        """
        wanted: List[str] = []
        for symbol in (symbols if symbols is not None else self._config.watchlist):
            s = str(symbol).strip().upper()
            if s and s not in wanted:
                wanted.append(s)

        prices: Dict[str, PriceInfo] = {}
        batch_size = max(1, self._config.batch_size)

        for i in range(0, len(wanted), batch_size):
            batch = wanted[i:i + batch_size]
            results = await asyncio.gather(
                *(self._lookup(s, self.product_id(s)) for s in batch)
            )
            for symbol, info in zip(batch, results):
                if info is not None:
                    prices[symbol] = info

        logger.debug(f"Priced {len(prices)}/{len(wanted)} symbols")
        return prices

    async def get_price(self, symbol: str) -> PriceInfo:
        """Price one symbol against the configured quote currency."""
        return await self.get_product_price(self.product_id(symbol))

    async def get_product_price(self, product_id: str) -> PriceInfo:
        """
        Price one product (e.g., BTC-USD).

        Raises:
            ExchangeApiError: 404 when every lookup fails
        """
        product_id = product_id.strip().upper()
        symbol = product_id.split("-")[0]
        info = await self._lookup(symbol, product_id)
        if info is None:
            raise ExchangeApiError(
                404,
                None,
                f"No price available for {product_id}",
                code="EXC_NOT_FOUND",
            )
        return info

    # --------------------------------------------------------
    # CATALOG
    # --------------------------------------------------------

    async def list_products(self) -> List[ProductInfo]:
        """Online, tradable products quoted in the configured currency."""
        base = self._client.config.endpoints.exchange_url
        response = await self._client.public_request("GET", f"{base}/products", operation="list_products")

        products = []
        for p in response.data or []:
            if p.get("quote_currency") != self._config.quote_currency:
                continue
            if p.get("status") != "online" or p.get("trading_disabled"):
                continue
            symbol = p.get("base_currency", "")
            products.append(ProductInfo(
                id=p.get("id", ""),
                symbol=symbol,
                display_name=p.get("base_display_symbol") or symbol,
                name=p.get("base_name") or symbol,
                min_size=p.get("base_min_size"),
                max_size=p.get("base_max_size"),
                status=p.get("status", ""),
            ))

        logger.info(f"Loaded {len(products)} {self._config.quote_currency} products")
        return products

    async def get_all_prices(self) -> Tuple[Dict[str, PriceInfo], List[ProductInfo]]:
        """Price every listed product."""
        products = await self.list_products()
        prices = await self.get_prices([p.symbol for p in products])
        return prices, products

    async def get_exchange_rates(self, currency: str = "USD") -> Dict[str, str]:
        """Exchange rates from one currency to all others."""
        base = self._client.config.endpoints.api_url
        response = await self._client.public_request(
            "GET",
            f"{base}/v2/exchange-rates",
            params={"currency": currency.upper()},
            operation="get_exchange_rates",
        )
        return ((response.data or {}).get("data") or {}).get("rates") or {}

    async def get_currencies(self) -> List[Dict[str, Any]]:
        """Currencies known to the exchange."""
        base = self._client.config.endpoints.api_url
        response = await self._client.public_request("GET", f"{base}/v2/currencies", operation="get_currencies")
        return (response.data or {}).get("data") or []

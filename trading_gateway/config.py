"""
Trading Gateway - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the Trading Gateway.

CRITICAL CONSTRAINTS:
- Credentials are read at first use, never at import time
- Token lifetime is fixed (not configurable)
- Preview fee rate is this gateway's own estimate

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple
from decimal import Decimal

from dotenv import load_dotenv


# ============================================================
# CONSTANTS
# ============================================================

PREVIEW_FEE_RATE = Decimal("0.005")
"""Fee rate used for order previews (0.5%). Independent of any other fee shown to users."""

TOKEN_LIFETIME_SECONDS = 120
"""Signed token validity window. Fixed."""

DEFAULT_WATCHLIST: Tuple[str, ...] = (
    "BTC", "ETH", "SOL", "ADA", "XRP", "DOT", "AVAX", "MATIC", "LINK", "UNI",
)


# ============================================================
# CREDENTIALS CONFIGURATION
# ============================================================

@dataclass
class CredentialsConfig:
    """
    Where to find exchange credentials.

    Values are resolved lazily by the request client.
    """

    api_key_env: str = "COINBASE_API_KEY_ID"
    """Env var holding the API key identifier."""

    private_key_env: str = "COINBASE_PRIVATE_KEY"
    """Env var holding the PEM private key."""

    api_key_id: Optional[str] = None
    """Explicit key identifier (overrides env)."""

    private_key_pem: Optional[str] = None
    """Explicit PEM (overrides env)."""

    def resolve(self) -> Tuple[Optional[str], Optional[str]]:
        """Return (api_key_id, private_key_pem), explicit values first."""
        key_id = self.api_key_id or os.environ.get(self.api_key_env) or None
        pem = self.private_key_pem or os.environ.get(self.private_key_env) or None
        return key_id, pem


# ============================================================
# RATE LIMIT CONFIGURATION
# ============================================================

@dataclass
class RateLimitConfig:
    """
    Outbound rate limit.

    Keeps the upstream account clear of throttling or bans.
    """

    min_interval_seconds: float = 0.1
    """Minimum spacing between outbound calls (10 calls/s)."""


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.
    """

    connection_timeout_seconds: float = 5.0
    """Connection timeout."""

    read_timeout_seconds: float = 30.0
    """Total timeout for one request/response."""


# ============================================================
# ENDPOINT CONFIGURATION
# ============================================================

@dataclass
class EndpointConfig:
    """Exchange hosts and paths."""

    api_host: str = "api.coinbase.com"
    """Host for authenticated brokerage and spot-price endpoints."""

    exchange_host: str = "api.exchange.coinbase.com"
    """Host for public product/ticker/stats endpoints."""

    brokerage_prefix: str = "/api/v3/brokerage"
    """Path prefix of the brokerage API."""

    token_issuer: str = "cdp"
    """Issuer claim for signed tokens."""

    @property
    def api_url(self) -> str:
        return f"https://{self.api_host}"

    @property
    def exchange_url(self) -> str:
        return f"https://{self.exchange_host}"

    def brokerage_path(self, suffix: str) -> str:
        return f"{self.brokerage_prefix}{suffix}"


# ============================================================
# MARKET DATA CONFIGURATION
# ============================================================

@dataclass
class MarketDataConfig:
    """Price lookup configuration."""

    watchlist: List[str] = field(default_factory=lambda: list(DEFAULT_WATCHLIST))
    """Symbols priced when the caller names none."""

    quote_currency: str = "USD"
    """Quote currency for products and prices."""

    batch_size: int = 10
    """Symbols looked up concurrently per batch."""


# ============================================================
# ORDER CONFIGURATION
# ============================================================

@dataclass
class OrderConfig:
    """Order preview and placement configuration."""

    preview_fee_rate: Decimal = PREVIEW_FEE_RATE
    """Fee rate applied in previews."""

    min_quote_funds: Decimal = Decimal("1")
    """Minimum BUY amount in quote currency."""

    min_base_size: Decimal = Decimal("0.00000001")
    """Minimum SELL size in base currency."""


# ============================================================
# PORTFOLIO CONFIGURATION
# ============================================================

@dataclass
class PortfolioConfig:
    """ROI configuration."""

    cash_currencies: List[str] = field(default_factory=lambda: ["USD", "USDC"])
    """Currencies treated as cash, not investments."""

    page_limit: int = 250
    """Page size for accounts and fills listing."""

    max_pages: int = 100
    """Upper bound on pages fetched per listing."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class GatewayConfig:
    """
    Master configuration for the Trading Gateway.
    """

    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    orders: OrderConfig = field(default_factory=OrderConfig)
    portfolio: PortfolioConfig = field(default_factory=PortfolioConfig)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "GatewayConfig":
        """
        Build configuration from environment variables.

        Only tuning knobs are read here. Credentials stay lazy.
        """
        if dotenv:
            load_dotenv()

        config = cls()

        interval = os.getenv("GATEWAY_MIN_INTERVAL_SECONDS")
        if interval:
            config.rate_limit.min_interval_seconds = float(interval)

        read_timeout = os.getenv("GATEWAY_READ_TIMEOUT_SECONDS")
        if read_timeout:
            config.timeout.read_timeout_seconds = float(read_timeout)

        watchlist = os.getenv("GATEWAY_WATCHLIST")
        if watchlist:
            config.market_data.watchlist = [
                s.strip().upper() for s in watchlist.split(",") if s.strip()
            ]

        quote = os.getenv("GATEWAY_QUOTE_CURRENCY")
        if quote:
            config.market_data.quote_currency = quote.strip().upper()

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Non-secret view of the configuration."""
        return {
            "rate_limit": {
                "min_interval_seconds": self.rate_limit.min_interval_seconds,
            },
            "timeout": {
                "connection_timeout_seconds": self.timeout.connection_timeout_seconds,
                "read_timeout_seconds": self.timeout.read_timeout_seconds,
            },
            "endpoints": {
                "api_host": self.endpoints.api_host,
                "exchange_host": self.endpoints.exchange_host,
            },
            "market_data": {
                "watchlist": list(self.market_data.watchlist),
                "quote_currency": self.market_data.quote_currency,
                "batch_size": self.market_data.batch_size,
            },
            "orders": {
                "preview_fee_rate": str(self.orders.preview_fee_rate),
                "min_quote_funds": str(self.orders.min_quote_funds),
                "min_base_size": str(self.orders.min_base_size),
            },
        }

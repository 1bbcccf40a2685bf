"""
Trading Gateway Package.

============================================================
PURPOSE
============================================================
Server-side gateway to a cryptocurrency exchange's trading API.

CRITICAL PRINCIPLE:
    "Every outbound call is signed per call and rate limited."
    "An order with no response is UNKNOWN, never failed."

AUTHORITY BOUNDARIES:
    CAN:
        - Read prices, accounts and fill history
        - Preview and place market orders
        - Compute ROI from fill history

    MUST NOT:
        - Retry order placement
        - Persist user or wallet ledgers
        - Log tokens or key material

============================================================
MODULES
============================================================
- types: Data models and exceptions
- config: Gateway configuration
- errors: Error taxonomy and codes
- key_material: PEM private key import (PKCS#8 and SEC1)
- token_signer: Per-call ES256 bearer tokens
- rate_limiter: Outbound minimum-interval limiter
- client: HTTP core and authenticated client
- market_data: Prices, products, rates
- accounts: Accounts, wallet valuation, fills
- order_service: Previews and market orders
- portfolio: ROI from fill replay
- gateway: Component wiring and action dispatch
- api: FastAPI surface

============================================================
"""

# ============================================================
# TYPES
# ============================================================
from .types import (
    # Enums
    OrderSide,
    OrderOutcome,
    # Dataclasses
    PrivateKeyMaterial,
    SigningToken,
    ExchangeResponse,
    ExchangeAccount,
    WalletSnapshot,
    Fill,
    InvestmentAggregate,
    AssetROI,
    ROIReport,
    PriceInfo,
    ProductInfo,
    OrderPreview,
    OrderResult,
    # Exceptions
    GatewayError,
    ConfigError,
    KeyFormatError,
    SigningError,
    ExchangeApiError,
    RequestTimeoutError,
    NetworkError,
    ValidationError,
)

# ============================================================
# CONFIGURATION
# ============================================================
from .config import (
    PREVIEW_FEE_RATE,
    TOKEN_LIFETIME_SECONDS,
    CredentialsConfig,
    RateLimitConfig,
    TimeoutConfig,
    EndpointConfig,
    MarketDataConfig,
    OrderConfig,
    PortfolioConfig,
    GatewayConfig,
)

# ============================================================
# ERRORS
# ============================================================
from .errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorCodeInfo,
    ERROR_CODES,
    get_error_info,
    map_http_status,
    is_retryable,
)

# ============================================================
# COMPONENTS
# ============================================================
from .key_material import KeyMaterialImporter, KeyMaterialCache, import_private_key
from .token_signer import TokenSigner
from .rate_limiter import RateLimiter, get_shared_rate_limiter
from .client import ExchangeHttpClient, AuthenticatedRequestClient
from .market_data import MarketDataService, PriceLookup
from .accounts import AccountService
from .order_service import OrderService
from .portfolio import PortfolioROICalculator, replay_fills
from .gateway import TradingGateway


__all__ = [
    # Types
    "OrderSide",
    "OrderOutcome",
    "PrivateKeyMaterial",
    "SigningToken",
    "ExchangeResponse",
    "ExchangeAccount",
    "WalletSnapshot",
    "Fill",
    "InvestmentAggregate",
    "AssetROI",
    "ROIReport",
    "PriceInfo",
    "ProductInfo",
    "OrderPreview",
    "OrderResult",
    # Exceptions
    "GatewayError",
    "ConfigError",
    "KeyFormatError",
    "SigningError",
    "ExchangeApiError",
    "RequestTimeoutError",
    "NetworkError",
    "ValidationError",
    # Config
    "PREVIEW_FEE_RATE",
    "TOKEN_LIFETIME_SECONDS",
    "CredentialsConfig",
    "RateLimitConfig",
    "TimeoutConfig",
    "EndpointConfig",
    "MarketDataConfig",
    "OrderConfig",
    "PortfolioConfig",
    "GatewayConfig",
    # Errors
    "ErrorCategory",
    "ErrorSeverity",
    "ErrorCodeInfo",
    "ERROR_CODES",
    "get_error_info",
    "map_http_status",
    "is_retryable",
    # Components
    "KeyMaterialImporter",
    "KeyMaterialCache",
    "import_private_key",
    "TokenSigner",
    "RateLimiter",
    "get_shared_rate_limiter",
    "ExchangeHttpClient",
    "AuthenticatedRequestClient",
    "MarketDataService",
    "PriceLookup",
    "AccountService",
    "OrderService",
    "PortfolioROICalculator",
    "replay_fills",
    "TradingGateway",
]

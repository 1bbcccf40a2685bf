"""
Trading Gateway - Types.

============================================================
PURPOSE
============================================================
All type definitions for the Trading Gateway.

CRITICAL PRINCIPLE:
    "Money is Decimal, never float."
    "Every value here lives for one call, except key material."

============================================================
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from enum import Enum
from decimal import Decimal


# ============================================================
# ORDER TYPES
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Any) -> "OrderSide":
        """Parse a side from user input (case-insensitive)."""
        if isinstance(value, OrderSide):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid order side: {value!r}", field_name="side")


class OrderOutcome(Enum):
    """Outcome of an order placement attempt."""

    ACCEPTED = "accepted"
    """Exchange acknowledged the order."""

    REJECTED = "rejected"
    """Exchange refused the order."""

    UNKNOWN = "unknown"
    """Request was sent but no response arrived. Never retry blindly."""


# ============================================================
# AUTHENTICATION
# ============================================================

@dataclass(frozen=True)
class PrivateKeyMaterial:
    """
    Imported EC private key.

    Owned by the key cache for the life of the process.
    Never serialized back out.
    """

    key: Any
    """cryptography EllipticCurvePrivateKey."""

    curve: str = "secp256r1"
    """Curve identifier."""

    source_encoding: str = "pkcs8"
    """Which input encoding produced this key (pkcs8 or sec1)."""

    def __repr__(self) -> str:
        return f"PrivateKeyMaterial(curve={self.curve!r}, source_encoding={self.source_encoding!r})"


@dataclass(frozen=True)
class SigningToken:
    """Short-lived, single-call authorization token."""

    header: Dict[str, Any]
    """JOSE header (alg, typ, kid, nonce)."""

    payload: Dict[str, Any]
    """Claims (sub, iss, nbf, exp, uri)."""

    signature: str
    """base64url ECDSA signature, no padding."""

    encoded: str
    """Compact serialization: header.payload.signature."""

    @property
    def nonce(self) -> str:
        return self.header["nonce"]

    @property
    def not_before(self) -> int:
        return self.payload["nbf"]

    @property
    def expiry(self) -> int:
        return self.payload["exp"]

    @property
    def uri(self) -> str:
        return self.payload["uri"]

    def __str__(self) -> str:
        return self.encoded

    def __repr__(self) -> str:
        return f"SigningToken(uri={self.uri!r}, nbf={self.not_before}, exp={self.expiry})"


# ============================================================
# HTTP
# ============================================================

@dataclass
class ExchangeResponse:
    """Successful (2xx) response from the exchange."""

    status: int
    """HTTP status code."""

    data: Any = None
    """Decoded JSON body (or raw text when not JSON)."""

    headers: Dict[str, str] = field(default_factory=dict)
    """Response headers."""

    latency_ms: float = 0.0
    """Round-trip latency."""


# ============================================================
# ACCOUNT STATE
# ============================================================

@dataclass
class ExchangeAccount:
    """Exchange-side account snapshot for one currency."""

    id: str
    """Exchange account UUID."""

    display_name: str = ""
    """Human-readable account name."""

    currency: str = ""
    """Currency code (e.g., BTC)."""

    available_balance: Decimal = Decimal("0")
    """Balance free to trade."""

    held_balance: Decimal = Decimal("0")
    """Balance on hold (open orders)."""

    usd_value: Decimal = Decimal("0")
    """Balance valued in USD at the current price."""

    account_type: str = ""
    """Exchange account type (e.g., ACCOUNT_TYPE_CRYPTO)."""

    @property
    def balance(self) -> Decimal:
        """Get total balance."""
        return self.available_balance + self.held_balance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.id,
            "name": self.display_name,
            "currency": self.currency,
            "balance": str(self.balance),
            "available": str(self.available_balance),
            "hold": str(self.held_balance),
            "usd_value": str(self.usd_value),
            "type": self.account_type,
        }


@dataclass
class WalletSnapshot:
    """All exchange accounts with their USD valuation."""

    accounts: List[ExchangeAccount] = field(default_factory=list)
    total_usd_value: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accounts": [a.to_dict() for a in self.accounts],
            "total_usd_value": str(self.total_usd_value),
        }


@dataclass(frozen=True)
class Fill:
    """One executed trade leg reported by the exchange."""

    product_id: str
    """Product (e.g., BTC-USD)."""

    side: OrderSide
    """Fill side."""

    size: Decimal
    """Filled base quantity."""

    price: Decimal
    """Fill price in quote currency."""

    commission: Decimal = Decimal("0")
    """Commission paid in quote currency."""

    trade_time: Optional[datetime] = None
    """Execution time."""

    trade_id: str = ""
    """Exchange trade ID."""

    @property
    def base_symbol(self) -> str:
        """Base asset of the product (BTC for BTC-USD)."""
        return self.product_id.split("-")[0].upper()


@dataclass
class InvestmentAggregate:
    """Running cost basis for one asset while replaying fills."""

    invested: Decimal = Decimal("0")
    """Cost basis of the currently held quantity."""

    quantity: Decimal = Decimal("0")
    """Quantity held according to fill history."""

    @property
    def average_cost(self) -> Decimal:
        if self.quantity == 0:
            return Decimal("0")
        return self.invested / self.quantity


@dataclass
class AssetROI:
    """Return on investment for one asset."""

    symbol: str
    invested: Decimal
    quantity: Decimal
    current_price: Decimal
    current_value: Decimal
    profit_loss: Decimal
    roi_percent: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "invested": str(self.invested),
            "quantity": str(self.quantity),
            "current_price": str(self.current_price),
            "current_value": str(self.current_value),
            "profit_loss": str(self.profit_loss),
            "roi_percent": str(self.roi_percent),
        }


@dataclass
class ROIReport:
    """Portfolio-wide ROI."""

    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    profit_loss: Decimal = Decimal("0")
    roi_percent: Decimal = Decimal("0")
    assets: List[AssetROI] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_invested": str(self.total_invested),
            "current_value": str(self.current_value),
            "profit_loss": str(self.profit_loss),
            "roi_percent": str(self.roi_percent),
            "assets": [a.to_dict() for a in self.assets],
        }


# ============================================================
# MARKET DATA
# ============================================================

@dataclass
class PriceInfo:
    """Current price and derived statistics for a symbol."""

    symbol: str
    """Base symbol (e.g., BTC)."""

    price: Decimal
    """Current price in quote currency."""

    currency: str = "USD"
    """Quote currency."""

    volume_24h: Optional[Decimal] = None
    """24h volume in quote currency."""

    open_24h: Optional[Decimal] = None
    high_24h: Optional[Decimal] = None
    low_24h: Optional[Decimal] = None

    change_percent_24h: Decimal = Decimal("0")
    """Percent change vs. 24h open (0 when open is unknown)."""

    market_cap: Decimal = Decimal("0")
    """Estimated market capitalization. An approximation."""

    source: str = ""
    """Which lookup strategy produced this price."""

    def to_dict(self) -> Dict[str, Any]:
        def _s(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            "symbol": self.symbol,
            "price": str(self.price),
            "currency": self.currency,
            "volume24h": _s(self.volume_24h),
            "open24h": _s(self.open_24h),
            "high24h": _s(self.high_24h),
            "low24h": _s(self.low_24h),
            "changePercent24h": str(self.change_percent_24h),
            "marketCap": str(self.market_cap),
            "source": self.source,
        }


@dataclass
class ProductInfo:
    """Tradable product listed by the exchange."""

    id: str
    symbol: str
    display_name: str = ""
    name: str = ""
    min_size: Optional[str] = None
    max_size: Optional[str] = None
    status: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "displayName": self.display_name,
            "name": self.name,
            "minSize": self.min_size,
            "maxSize": self.max_size,
            "status": self.status,
        }


# ============================================================
# ORDERS
# ============================================================

@dataclass
class OrderPreview:
    """Estimated fee and proceeds for a prospective market order."""

    product_id: str
    side: OrderSide
    estimated_fee: Decimal
    net_amount: Decimal
    current_price: Decimal
    quote_amount: Optional[Decimal] = None
    base_amount: Optional[Decimal] = None
    estimated_quantity: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "product_id": self.product_id,
            "side": self.side.value,
            "estimated_fee": str(self.estimated_fee),
            "net_amount": str(self.net_amount),
            "current_price": str(self.current_price),
        }
        if self.quote_amount is not None:
            result["quote_amount"] = str(self.quote_amount)
        if self.base_amount is not None:
            result["base_amount"] = str(self.base_amount)
        if self.estimated_quantity is not None:
            result["estimated_quantity"] = str(self.estimated_quantity)
        return result


@dataclass
class OrderResult:
    """
    Outcome of an order placement attempt.

    success is None when the outcome is UNKNOWN.
    """

    outcome: OrderOutcome
    """Accepted, rejected or unknown."""

    client_order_id: str
    """Idempotency key sent with the order."""

    order_id: Optional[str] = None
    """Exchange order ID when accepted."""

    error_message: Optional[str] = None
    """Reason when rejected or unknown."""

    raw_response: Dict[str, Any] = field(default_factory=dict)
    """Raw exchange response."""

    @property
    def success(self) -> Optional[bool]:
        if self.outcome == OrderOutcome.UNKNOWN:
            return None
        return self.outcome == OrderOutcome.ACCEPTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "order_id": self.order_id,
            "client_order_id": self.client_order_id,
            "error": self.error_message,
        }


# ============================================================
# EXCEPTIONS
# ============================================================

class GatewayError(Exception):
    """Base exception for Trading Gateway."""

    code: str = "INT_UNEXPECTED"


class ConfigError(GatewayError):
    """Required configuration (credentials) is missing."""

    code = "CFG_MISSING_CREDENTIALS"


class KeyFormatError(GatewayError):
    """Private key material could not be parsed."""

    code = "KEY_INVALID_FORMAT"

    def __init__(self, message: str, byte_length: Optional[int] = None):
        if byte_length is not None:
            message = f"{message} (decoded {byte_length} bytes)"
        super().__init__(message)
        self.byte_length = byte_length


class SigningError(GatewayError):
    """Token signing failed."""

    code = "AUT_SIGNING_FAILED"


class ExchangeApiError(GatewayError):
    """Exchange rejected the call with a non-2xx status."""

    def __init__(
        self,
        status: int,
        body: Any = None,
        message: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message or f"Exchange returned HTTP {status}")
        self.status = status
        self.body = body
        self.code = code or "EXC_API_ERROR"


class RequestTimeoutError(GatewayError, TimeoutError):
    """No response within the caller's deadline. Outcome unknown."""

    code = "TMO_READ"


class NetworkError(GatewayError):
    """Transport failure talking to the exchange."""

    code = "NET_CONNECTION_FAILED"

    def __init__(self, message: str, request_sent: bool = True):
        super().__init__(message)
        self.request_sent = request_sent


class ValidationError(GatewayError):
    """Caller-supplied input failed sanity checks."""

    code = "VAL_INVALID_AMOUNT"

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.field_name = field_name

"""
Trading Gateway - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Secure logging for outbound exchange calls with:
- Credential masking (bearer tokens, key material)
- Request/response sanitization
- Structured JSON log lines

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log bearer tokens or private key material
2. Mask sensitive headers (Authorization, etc.)
3. Hash request bodies instead of logging them
4. Truncate response previews

============================================================
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "cb-access-key",
    "cb-access-sign",
    "cb-access-passphrase",
    "x-api-key",
    "api-key",
    "cookie",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "api_key",
    "api_key_id",
    "private_key",
    "privatekey",
    "secret",
    "signature",
    "token",
    "access_token",
}

# Regex patterns for sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"), "***JWT***"),
    (re.compile(r"-----BEGIN[^-]*-----.*?-----END[^-]*-----", re.DOTALL), "***PEM***"),
]


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_text(text: str) -> str:
    """Replace tokens and PEM blocks embedded in free text."""
    if not text:
        return text
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Mask sensitive headers.

    Args:
        headers: Request/response headers

    Returns:
        Headers with sensitive values masked
    """
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Request parameters

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked[key] = mask_text(value)
        else:
            masked[key] = value
    return masked


def mask_url(url: str) -> str:
    """
    Mask sensitive data in URL.

    Args:
        url: URL string

    Returns:
        URL with sensitive params masked
    """
    if not url:
        return url

    for param in SENSITIVE_PARAMS:
        pattern = re.compile(f"({param}=)([^&]+)", re.IGNORECASE)
        url = pattern.sub(lambda m: f"{m.group(1)}***", url)

    return url


# ============================================================
# LOG ENTRY STRUCTURES
# ============================================================

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RequestLogEntry:
    """Structured log entry for requests."""

    timestamp: str
    operation: str
    method: str
    endpoint: str
    request_id: str
    authenticated: bool = False

    # Request details (masked)
    headers: Dict[str, str] = None
    params: Dict[str, Any] = None
    body_hash: str = None  # Hash of body instead of full body

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class ResponseLogEntry:
    """Structured log entry for responses."""

    timestamp: str
    operation: str
    request_id: str

    # Response details
    status_code: int
    latency_ms: float
    success: bool

    # Error info (if applicable)
    error_code: str = None
    error_message: str = None

    # Response preview (sanitized)
    response_preview: str = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class OrderLogEntry:
    """Structured log entry for orders."""

    timestamp: str
    operation: str  # place_buy, place_sell
    client_order_id: str
    product_id: str = None
    side: str = None
    amount: str = None
    outcome: str = None
    order_id: str = None
    error_message: str = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


# ============================================================
# GATEWAY LOGGER
# ============================================================

class GatewayLogger:
    """
    Secure logger for gateway operations.

    Provides structured logging with automatic credential masking.
    """

    def __init__(self, name: str = "trading_gateway.http"):
        self._logger = logging.getLogger(name)
        self._request_counter = 0

    def _generate_request_id(self) -> str:
        self._request_counter += 1
        return f"gw-{self._request_counter}"

    @staticmethod
    def _hash_body(body: Any) -> Optional[str]:
        """Create hash of request body."""
        if not body:
            return None

        if isinstance(body, (dict, list)):
            body_str = json.dumps(body, sort_keys=True, default=str)
        else:
            body_str = str(body)

        return hashlib.sha256(body_str.encode()).hexdigest()[:16]

    def log_request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        headers: Dict[str, str] = None,
        params: Dict[str, Any] = None,
        body: Any = None,
        authenticated: bool = False,
    ) -> str:
        """
        Log outgoing request.

        Returns:
            Request ID for correlation
        """
        request_id = self._generate_request_id()

        entry = RequestLogEntry(
            timestamp=_now_iso(),
            operation=operation,
            method=method,
            endpoint=mask_url(endpoint),
            request_id=request_id,
            authenticated=authenticated,
            headers=mask_headers(headers) if headers else None,
            params=mask_params(params) if params else None,
            body_hash=self._hash_body(body),
        )

        self._logger.debug(f"REQUEST: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        operation: str,
        request_id: str,
        status_code: int,
        latency_ms: float,
        success: bool,
        error_code: str = None,
        error_message: str = None,
        response_body: Any = None,
    ) -> None:
        """Log incoming response."""
        preview = None
        if response_body:
            if isinstance(response_body, (dict, list)):
                preview = json.dumps(response_body, default=str)[:200]
            else:
                preview = str(response_body)[:200]
            preview = mask_text(preview)

        entry = ResponseLogEntry(
            timestamp=_now_iso(),
            operation=operation,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 2),
            success=success,
            error_code=error_code,
            error_message=mask_text(error_message[:200]) if error_message else None,
            response_preview=preview,
        )

        if success:
            self._logger.debug(f"RESPONSE: {entry.to_json()}")
        else:
            self._logger.warning(f"RESPONSE_ERROR: {entry.to_json()}")

    def log_order(
        self,
        operation: str,
        client_order_id: str,
        product_id: str = None,
        side: str = None,
        amount: str = None,
        outcome: str = None,
        order_id: str = None,
        error_message: str = None,
    ) -> None:
        """Log order placement."""
        entry = OrderLogEntry(
            timestamp=_now_iso(),
            operation=operation,
            client_order_id=client_order_id,
            product_id=product_id,
            side=side,
            amount=amount,
            outcome=outcome,
            order_id=order_id,
            error_message=error_message[:200] if error_message else None,
        )

        if outcome == "accepted":
            self._logger.info(f"ORDER: {entry.to_json()}")
        elif outcome == "unknown":
            self._logger.error(f"ORDER_UNKNOWN: {entry.to_json()}")
        else:
            self._logger.warning(f"ORDER_ERROR: {entry.to_json()}")

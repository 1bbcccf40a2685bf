"""
Trading Gateway - Error Taxonomy.

============================================================
PURPOSE
============================================================
Error classification for gateway failures.

ERROR CATEGORIES:
1. Configuration Errors - Credentials missing
2. Authentication Errors - Key parsing, token signing
3. Validation Errors - Bad caller input, rejected pre-network
4. Exchange Errors - Exchange rejected the call
5. Network Errors - Communication failures
6. Timeout Errors - No response within deadline

RETRY POLICY:
- Nothing is retried inside the gateway.
- is_retryable only advises the caller.
- Order placement is never retried implicitly.

============================================================
"""

import json
from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    CONFIGURATION = "CONFIGURATION"
    """Required configuration missing."""

    AUTHENTICATION = "AUTHENTICATION"
    """Key material or signing failure, or exchange auth rejection."""

    VALIDATION = "VALIDATION"
    """Caller input rejected before any network call."""

    EXCHANGE = "EXCHANGE"
    """Exchange rejected or failed."""

    NETWORK = "NETWORK"
    """Network/communication error."""

    TIMEOUT = "TIMEOUT"
    """Request timed out."""

    RATE_LIMIT = "RATE_LIMIT"
    """Exchange-side rate limit exceeded."""

    INTERNAL = "INTERNAL"
    """Internal system error."""


class ErrorSeverity(Enum):
    """Error severity levels."""

    WARNING = "WARNING"
    """Non-critical, informational."""

    ERROR = "ERROR"
    """Standard error, needs attention."""

    CRITICAL = "CRITICAL"
    """Critical error, operator action needed."""

    FATAL = "FATAL"
    """Fatal error, gateway cannot operate."""


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    """Error code."""

    category: ErrorCategory
    """Error category."""

    severity: ErrorSeverity
    """Error severity."""

    is_retryable: bool
    """Whether the caller may retry (gateway never does)."""

    description: str
    """Human-readable description."""

    recommended_action: str
    """Recommended action to take."""


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    # ========== CONFIGURATION ERRORS ==========
    "CFG_MISSING_CREDENTIALS": ErrorCodeInfo(
        code="CFG_MISSING_CREDENTIALS",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.FATAL,
        is_retryable=False,
        description="API key identifier or private key not configured",
        recommended_action="Set COINBASE_API_KEY_ID and COINBASE_PRIVATE_KEY",
    ),

    # ========== AUTHENTICATION ERRORS ==========
    "KEY_INVALID_FORMAT": ErrorCodeInfo(
        code="KEY_INVALID_FORMAT",
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.FATAL,
        is_retryable=False,
        description="Private key is neither PKCS#8 nor SEC1 P-256",
        recommended_action="Re-export the key in PEM format",
    ),
    "AUT_SIGNING_FAILED": ErrorCodeInfo(
        code="AUT_SIGNING_FAILED",
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.CRITICAL,
        is_retryable=False,
        description="Could not sign the authorization token",
        recommended_action="Verify the private key",
    ),
    "AUT_REJECTED": ErrorCodeInfo(
        code="AUT_REJECTED",
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.CRITICAL,
        is_retryable=False,
        description="Exchange rejected the credentials",
        recommended_action="Check API key permissions and clock skew",
    ),

    # ========== VALIDATION ERRORS ==========
    "VAL_INVALID_AMOUNT": ErrorCodeInfo(
        code="VAL_INVALID_AMOUNT",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        is_retryable=False,
        description="Amount is non-numeric, non-positive or below minimum",
        recommended_action="Correct the order amount",
    ),
    "VAL_INVALID_REQUEST": ErrorCodeInfo(
        code="VAL_INVALID_REQUEST",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        is_retryable=False,
        description="Request is missing required parameters",
        recommended_action="Correct the request",
    ),

    # ========== EXCHANGE ERRORS ==========
    "EXC_API_ERROR": ErrorCodeInfo(
        code="EXC_API_ERROR",
        category=ErrorCategory.EXCHANGE,
        severity=ErrorSeverity.ERROR,
        is_retryable=False,
        description="Exchange returned an error",
        recommended_action="Inspect upstream message",
    ),
    "EXC_NOT_FOUND": ErrorCodeInfo(
        code="EXC_NOT_FOUND",
        category=ErrorCategory.EXCHANGE,
        severity=ErrorSeverity.WARNING,
        is_retryable=False,
        description="Product or resource not found",
        recommended_action="Check product ID",
    ),
    "EXC_BAD_REQUEST": ErrorCodeInfo(
        code="EXC_BAD_REQUEST",
        category=ErrorCategory.EXCHANGE,
        severity=ErrorSeverity.ERROR,
        is_retryable=False,
        description="Exchange rejected the request (e.g., insufficient funds)",
        recommended_action="Inspect upstream message",
    ),
    "EXC_UNAVAILABLE": ErrorCodeInfo(
        code="EXC_UNAVAILABLE",
        category=ErrorCategory.EXCHANGE,
        severity=ErrorSeverity.ERROR,
        is_retryable=True,
        description="Exchange internal error or maintenance",
        recommended_action="Retry later",
    ),
    "RTE_EXCHANGE_LIMIT": ErrorCodeInfo(
        code="RTE_EXCHANGE_LIMIT",
        category=ErrorCategory.RATE_LIMIT,
        severity=ErrorSeverity.WARNING,
        is_retryable=True,
        description="Exchange rate limit exceeded",
        recommended_action="Back off before retrying",
    ),

    # ========== NETWORK ERRORS ==========
    "NET_CONNECTION_FAILED": ErrorCodeInfo(
        code="NET_CONNECTION_FAILED",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.ERROR,
        is_retryable=True,
        description="Failed to reach the exchange",
        recommended_action="Check connectivity",
    ),

    # ========== TIMEOUT ERRORS ==========
    "TMO_READ": ErrorCodeInfo(
        code="TMO_READ",
        category=ErrorCategory.TIMEOUT,
        severity=ErrorSeverity.ERROR,
        is_retryable=False,
        description="No response within deadline; outcome unknown",
        recommended_action="Check order status before re-submitting",
    ),

    # ========== INTERNAL ERRORS ==========
    "INT_UNEXPECTED": ErrorCodeInfo(
        code="INT_UNEXPECTED",
        category=ErrorCategory.INTERNAL,
        severity=ErrorSeverity.CRITICAL,
        is_retryable=False,
        description="Unexpected failure inside the gateway",
        recommended_action="Check gateway logs",
    ),
}


# ============================================================
# HTTP STATUS MAPPING
# ============================================================

HTTP_STATUS_MAPPING: Dict[int, str] = {
    400: "EXC_BAD_REQUEST",
    401: "AUT_REJECTED",
    403: "AUT_REJECTED",
    404: "EXC_NOT_FOUND",
    429: "RTE_EXCHANGE_LIMIT",
    500: "EXC_UNAVAILABLE",
    502: "EXC_UNAVAILABLE",
    503: "EXC_UNAVAILABLE",
    504: "EXC_UNAVAILABLE",
}


def get_error_info(code: str) -> ErrorCodeInfo:
    """
    Get error info for a code.

    Args:
        code: Error code

    Returns:
        ErrorCodeInfo or default unknown error
    """
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        category=ErrorCategory.INTERNAL,
        severity=ErrorSeverity.ERROR,
        is_retryable=False,
        description=f"Unknown error: {code}",
        recommended_action="Investigate error",
    ))


def map_http_status(status: int) -> str:
    """
    Map an upstream HTTP status to an internal error code.

    Args:
        status: HTTP status code

    Returns:
        Internal error code
    """
    return HTTP_STATUS_MAPPING.get(status, "EXC_API_ERROR")


def extract_error_message(body: Any) -> Optional[str]:
    """
    Pull a human-readable message out of an upstream error body.

    Looks at error_response.message, message, error_details and error,
    in that order. Accepts decoded JSON or raw text.
    """
    if body is None:
        return None

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")

    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            text = body.strip()
            return text[:200] if text else None

    if not isinstance(body, dict):
        return None

    nested = body.get("error_response")
    if isinstance(nested, dict):
        message = extract_error_message(nested)
        if message:
            return message

    for key in ("message", "error_details", "error"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    return None


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable by the caller."""
    return get_error_info(code).is_retryable


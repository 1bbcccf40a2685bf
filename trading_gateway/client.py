"""
Trading Gateway - Exchange HTTP Client.

============================================================
PURPOSE
============================================================
HTTP core for all exchange calls.

- ExchangeHttpClient: session lifecycle, rate limiting, error
  mapping and secure logging for unauthenticated calls
- AuthenticatedRequestClient: adds the per-call signed bearer
  token for brokerage endpoints

FAILURE SURFACE:
- Non-2xx        -> ExchangeApiError(status, body)
- Deadline hit   -> RequestTimeoutError (outcome unknown)
- Transport fail -> NetworkError(request_sent)
Nothing is retried here.

============================================================
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

import aiohttp

from .config import GatewayConfig
from .errors import extract_error_message, map_http_status
from .key_material import KeyMaterialCache
from .logging_utils import GatewayLogger
from .rate_limiter import RateLimiter, get_shared_rate_limiter
from .token_signer import TokenSigner
from .types import (
    ExchangeResponse,
    PrivateKeyMaterial,
    ConfigError,
    ExchangeApiError,
    NetworkError,
    RequestTimeoutError,
)


logger = logging.getLogger(__name__)


def build_path(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Append an encoded query string to a path, skipping None values."""
    if not params:
        return path
    query = urlencode([(k, v) for k, v in params.items() if v is not None], doseq=True)
    return f"{path}?{query}" if query else path


# ============================================================
# UNAUTHENTICATED CLIENT
# ============================================================

class ExchangeHttpClient:
    """
    Rate-limited HTTP client for exchange endpoints.

    Every outbound call passes RateLimiter.throttle() first.
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            config: Gateway configuration
            rate_limiter: Limiter to share (default: process-wide)
            session: Pre-built session (tests); owned by the caller
        """
        self._config = config or GatewayConfig()
        self._rate_limiter = rate_limiter or get_shared_rate_limiter(self._config.rate_limit)
        self._session = session
        self._owns_session = session is None
        self._log = GatewayLogger()

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self.is_connected:
            return

        timeout = aiohttp.ClientTimeout(
            connect=self._config.timeout.connection_timeout_seconds,
            total=self._config.timeout.read_timeout_seconds,
        )
        self._session = aiohttp.ClientSession(timeout=timeout)
        self._owns_session = True
        logger.info("Exchange HTTP session opened")

    async def disconnect(self) -> None:
        """Close the HTTP session if we own it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.info("Exchange HTTP session closed")
        self._session = None

    async def __aenter__(self) -> "ExchangeHttpClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # --------------------------------------------------------
    # REQUESTS
    # --------------------------------------------------------

    async def public_request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        operation: str = "public",
    ) -> ExchangeResponse:
        """
        Unauthenticated request (still rate limited).

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query parameters
            operation: Name used in logs
        """
        return await self._send(
            method,
            build_path(url, params),
            headers={"Accept": "application/json"},
            operation=operation,
        )

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json_body: Any = None,
        operation: str = "request",
        authenticated: bool = False,
    ) -> ExchangeResponse:
        """Throttle, send, and map the outcome."""
        if not self.is_connected:
            await self.connect()

        await self._rate_limiter.throttle()

        request_id = self._log.log_request(
            operation=operation,
            method=method,
            endpoint=url,
            headers=headers,
            params=dict(parse_qsl(urlsplit(url).query)) or None,
            body=json_body,
            authenticated=authenticated,
        )
        started = time.monotonic()

        try:
            async with self._session.request(
                method,
                url,
                headers=headers,
                json=json_body,
            ) as response:
                data = await self._read_body(response)
                latency_ms = (time.monotonic() - started) * 1000

                if not 200 <= response.status < 300:
                    code = map_http_status(response.status)
                    message = extract_error_message(data) or f"Exchange returned HTTP {response.status}"
                    self._log.log_response(
                        operation=operation,
                        request_id=request_id,
                        status_code=response.status,
                        latency_ms=latency_ms,
                        success=False,
                        error_code=code,
                        error_message=message,
                        response_body=data,
                    )
                    raise ExchangeApiError(response.status, data, message, code)

                self._log.log_response(
                    operation=operation,
                    request_id=request_id,
                    status_code=response.status,
                    latency_ms=latency_ms,
                    success=True,
                    response_body=data,
                )
                return ExchangeResponse(
                    status=response.status,
                    data=data,
                    headers=dict(response.headers),
                    latency_ms=latency_ms,
                )

        except asyncio.TimeoutError:
            logger.warning(f"{operation}: no response within deadline ({request_id})")
            raise RequestTimeoutError(f"{operation}: request timed out; outcome unknown")
        except aiohttp.ClientConnectorError as e:
            raise NetworkError(f"{operation}: cannot connect: {e}", request_sent=False)
        except aiohttp.ClientError as e:
            raise NetworkError(f"{operation}: network error: {e}", request_sent=True)

    @staticmethod
    async def _read_body(response) -> Any:
        text = await response.text()
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text


# ============================================================
# AUTHENTICATED CLIENT
# ============================================================

_shared_key_cache = KeyMaterialCache()


def get_shared_key_cache() -> KeyMaterialCache:
    """Get the process-wide key cache."""
    return _shared_key_cache


class AuthenticatedRequestClient(ExchangeHttpClient):
    """
    Signed requests against the brokerage API.

    Credentials are resolved on first use; a missing secret is a
    ConfigError at that point, not at startup.
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        key_cache: Optional[KeyMaterialCache] = None,
        signer: Optional[TokenSigner] = None,
    ):
        super().__init__(config=config, rate_limiter=rate_limiter, session=session)
        self._key_cache = key_cache or get_shared_key_cache()
        self._signer = signer or TokenSigner(
            host=self._config.endpoints.api_host,
            issuer=self._config.endpoints.token_issuer,
        )

    def _credentials(self) -> Tuple[str, PrivateKeyMaterial]:
        key_id, pem = self._config.credentials.resolve()
        missing = []
        if not key_id:
            missing.append(self._config.credentials.api_key_env)
        if not pem:
            missing.append(self._config.credentials.private_key_env)
        if missing:
            raise ConfigError(f"Exchange credentials not configured: {', '.join(missing)}")
        return key_id, self._key_cache.get(pem)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        operation: str = "request",
    ) -> ExchangeResponse:
        """
        Signed request.

        Args:
            method: HTTP method
            path: Request target on the API host, query string included
            body: JSON body
            operation: Name used in logs

        Returns:
            ExchangeResponse (2xx only)

        Raises:
            ConfigError, KeyFormatError, SigningError,
            ExchangeApiError, RequestTimeoutError, NetworkError
        """
        method = method.upper()
        key_id, key = self._credentials()
        token = self._signer.sign(key_id, key, method, path)

        headers = {
            "Authorization": f"Bearer {token.encoded}",
            "Accept": "application/json",
        }
        if body is not None:
            headers["Content-Type"] = "application/json"

        return await self._send(
            method,
            f"{self._config.endpoints.api_url}{path}",
            headers=headers,
            json_body=body,
            operation=operation,
            authenticated=True,
        )

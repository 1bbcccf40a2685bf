"""
Shared fixtures for Trading Gateway tests.

Provides generated P-256 keys in both PEM encodings and a fake
aiohttp session that replays canned responses.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from trading_gateway.client import AuthenticatedRequestClient, ExchangeHttpClient
from trading_gateway.config import CredentialsConfig, GatewayConfig, RateLimitConfig
from trading_gateway.key_material import KeyMaterialCache
from trading_gateway.rate_limiter import RateLimiter


# ============================================================
# KEYS
# ============================================================

@pytest.fixture(scope="session")
def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def pkcs8_pem(ec_private_key) -> str:
    return ec_private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def sec1_pem(ec_private_key) -> str:
    return ec_private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ).decode()


# ============================================================
# FAKE HTTP
# ============================================================

class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside `async with`."""

    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.headers = headers or {"Content-Type": "application/json"}
        if body is None:
            self._text = ""
        elif isinstance(body, str):
            self._text = body
        else:
            self._text = json.dumps(body)

    async def text(self) -> str:
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement.

    `router` maps (method, url) to a FakeResponse, or raises.
    Every call is recorded in `calls`.
    """

    def __init__(self, router: Callable[[str, str, Dict[str, str], Any], Any]):
        self._router = router
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def request(self, method, url, headers=None, json=None):
        self.calls.append({"method": method, "url": url, "headers": headers or {}, "json": json})
        result = self._router(method, url, headers or {}, json)
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self):
        self.closed = True


def route_table(table: Dict[str, Any], default: Any = None):
    """
    Build a router keyed by URL suffix, query string ignored.

    The longest matching key wins. Values are FakeResponse,
    exceptions, or callables taking the request JSON.
    """
    def router(method, url, headers, body):
        path = url.split("?", 1)[0]
        matches = [key for key in table if path.endswith(key)]
        if not matches:
            return default if default is not None else FakeResponse(404, {"message": "not found"})
        value = table[max(matches, key=len)]
        if callable(value) and not isinstance(value, (FakeResponse, BaseException)):
            return value(body)
        return value
    return router


@pytest.fixture
def gateway_config(pkcs8_pem) -> GatewayConfig:
    """Config with explicit credentials and no rate limit spacing."""
    return GatewayConfig(
        credentials=CredentialsConfig(
            api_key_id="organizations/test/apiKeys/key-1",
            private_key_pem=pkcs8_pem,
        ),
        rate_limit=RateLimitConfig(min_interval_seconds=0.0),
    )


@pytest.fixture
def make_client(gateway_config):
    """Factory for an authenticated client over a FakeSession."""
    def factory(router, config: Optional[GatewayConfig] = None) -> AuthenticatedRequestClient:
        cfg = config or gateway_config
        return AuthenticatedRequestClient(
            config=cfg,
            rate_limiter=RateLimiter(cfg.rate_limit),
            session=FakeSession(router),
            key_cache=KeyMaterialCache(),
        )
    return factory


@pytest.fixture
def make_public_client(gateway_config):
    """Factory for an unauthenticated client over a FakeSession."""
    def factory(router) -> ExchangeHttpClient:
        return ExchangeHttpClient(
            config=gateway_config,
            rate_limiter=RateLimiter(gateway_config.rate_limit),
            session=FakeSession(router),
        )
    return factory

"""
Trading Gateway - Gateway.

============================================================
PURPOSE
============================================================
Wires the components together and dispatches caller requests.

REQUEST:   {"action": "<name>", ...params}
RESPONSE:  {"success": true, "data": ...}
           {"success": false, "error": "...", "code": "...", "retryable": ...}

ACTIONS:
    get-prices, get-all-prices, get-products,
    get-exchange-rates, get-currencies,
    get-accounts, get-roi,
    order-preview, buy, sell

An order whose outcome is unknown answers with
{"success": false, "outcome": "unknown", ...} and is never
reported as either filled or failed.

============================================================
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .accounts import AccountService
from .client import AuthenticatedRequestClient
from .config import GatewayConfig
from .errors import is_retryable
from .market_data import MarketDataService
from .order_service import OrderService
from .portfolio import PortfolioROICalculator
from .rate_limiter import RateLimiter, get_shared_rate_limiter
from .types import GatewayError, OrderOutcome, OrderResult, ValidationError


logger = logging.getLogger(__name__)


Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def _param(params: Dict[str, Any], *names: str) -> Any:
    """First present parameter among aliases (camelCase and snake_case)."""
    for name in names:
        if params.get(name) is not None:
            return params[name]
    return None


def _symbols(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple)):
        return [str(s) for s in value]
    raise ValidationError("symbols must be a list or comma-separated string", field_name="symbols")


def error_response(error: GatewayError) -> Dict[str, Any]:
    """Uniform failure envelope for a gateway error."""
    return {
        "success": False,
        "error": str(error),
        "code": error.code,
        "retryable": is_retryable(error.code),
    }


def order_response(result: OrderResult) -> Dict[str, Any]:
    """Envelope for a placement attempt."""
    data = result.to_dict()
    if result.outcome == OrderOutcome.ACCEPTED:
        return {"success": True, "data": data}
    return {
        "success": False,
        "outcome": result.outcome.value,
        "error": result.error_message,
        "data": data,
    }


class TradingGateway:
    """
    Exchange trading gateway.

    Owns one HTTP session. Use as an async context manager,
    or call connect()/disconnect().
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        client: Optional[AuthenticatedRequestClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self._config = config or (client.config if client else GatewayConfig())
        self._client = client or AuthenticatedRequestClient(
            config=self._config,
            rate_limiter=rate_limiter or get_shared_rate_limiter(self._config.rate_limit),
        )

        self.market_data = MarketDataService(self._client, self._config.market_data)
        self.accounts = AccountService(self._client, self.market_data, self._config.portfolio)
        self.orders = OrderService(self._client, self.market_data, self._config.orders)
        self.portfolio = PortfolioROICalculator(self.accounts, self.market_data)

        self._handlers: Dict[str, Handler] = {
            "get-prices": self._get_prices,
            "get-all-prices": self._get_all_prices,
            "get-products": self._get_products,
            "get-exchange-rates": self._get_exchange_rates,
            "get-currencies": self._get_currencies,
            "get-accounts": self._get_accounts,
            "get-roi": self._get_roi,
            "order-preview": self._order_preview,
            "buy": self._buy,
            "sell": self._sell,
        }

    @classmethod
    def from_env(cls) -> "TradingGateway":
        """Gateway configured from environment (and .env)."""
        return cls(config=GatewayConfig.from_env())

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def client(self) -> AuthenticatedRequestClient:
        return self._client

    @property
    def actions(self) -> List[str]:
        return list(self._handlers)

    def status(self) -> Dict[str, Any]:
        """Non-secret configuration and limiter statistics."""
        return {
            "connected": self._client.is_connected,
            "config": self._config.to_dict(),
            "rate_limiter": self._client.rate_limiter.get_status(),
        }

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def __aenter__(self) -> "TradingGateway":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # --------------------------------------------------------
    # DISPATCH
    # --------------------------------------------------------

    async def dispatch(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one caller request.

        Args:
            request: {"action": ..., **params}

        Returns:
            Response envelope; never raises
        """
        if not isinstance(request, dict):
            return {"success": False, "error": "Request must be an object", "code": "VAL_INVALID_REQUEST"}

        action = request.get("action")
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            logger.warning(f"Unknown action: {action!r}")
            return {"success": False, "error": f"Unknown action: {action}", "code": "VAL_INVALID_REQUEST"}

        logger.debug(f"Dispatching {action}")
        try:
            return await handler(request)
        except GatewayError as e:
            logger.warning(f"{action} failed [{e.code}]: {e}")
            return error_response(e)
        except Exception as e:
            logger.exception(f"{action} raised unexpectedly: {e!r}")
            return error_response(GatewayError(f"Internal error while handling {action}"))

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def _get_prices(self, params: Dict[str, Any]) -> Dict[str, Any]:
        prices = await self.market_data.get_prices(_symbols(params.get("symbols")))
        return {"success": True, "data": {s: p.to_dict() for s, p in prices.items()}}

    async def _get_all_prices(self, params: Dict[str, Any]) -> Dict[str, Any]:
        prices, products = await self.market_data.get_all_prices()
        return {
            "success": True,
            "data": {
                "prices": {s: p.to_dict() for s, p in prices.items()},
                "products": [p.to_dict() for p in products],
            },
        }

    async def _get_products(self, params: Dict[str, Any]) -> Dict[str, Any]:
        products = await self.market_data.list_products()
        return {"success": True, "data": [p.to_dict() for p in products]}

    async def _get_exchange_rates(self, params: Dict[str, Any]) -> Dict[str, Any]:
        currency = params.get("currency") or self._config.market_data.quote_currency
        rates = await self.market_data.get_exchange_rates(str(currency))
        return {"success": True, "data": rates}

    async def _get_currencies(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True, "data": await self.market_data.get_currencies()}

    # --------------------------------------------------------
    # ACCOUNT STATE
    # --------------------------------------------------------

    async def _get_accounts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        wallet = await self.accounts.get_wallet()
        return {"success": True, "data": wallet.to_dict()}

    async def _get_roi(self, params: Dict[str, Any]) -> Dict[str, Any]:
        report = await self.portfolio.compute_roi()
        return {"success": True, "data": report.to_dict()}

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def _order_preview(self, params: Dict[str, Any]) -> Dict[str, Any]:
        preview = await self.orders.preview(
            _param(params, "productId", "product_id"),
            params.get("side"),
            params.get("amount"),
        )
        return {"success": True, "data": preview.to_dict()}

    async def _buy(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.orders.place_buy(
            _param(params, "productId", "product_id"),
            _param(params, "funds", "quote_size", "amount"),
        )
        return order_response(result)

    async def _sell(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.orders.place_sell(
            _param(params, "productId", "product_id"),
            _param(params, "size", "base_size", "amount"),
        )
        return order_response(result)

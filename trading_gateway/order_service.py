"""
Trading Gateway - Order Service.

============================================================
PURPOSE
============================================================
Order previews and market order placement.

CRITICAL PRINCIPLES:
    "Validate before any network call."
    "One fresh idempotency key per placement call."
    "Never retry a placement implicitly."
    "A lost response is UNKNOWN, not failure."

============================================================
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .client import AuthenticatedRequestClient
from .config import OrderConfig
from .errors import extract_error_message
from .logging_utils import GatewayLogger
from .market_data import MarketDataService
from .types import (
    OrderSide,
    OrderOutcome,
    OrderPreview,
    OrderResult,
    ExchangeApiError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)


logger = logging.getLogger(__name__)


GENERIC_ORDER_ERROR = "Order was rejected by the exchange"
UNKNOWN_OUTCOME_MESSAGE = (
    "No response from the exchange; the order may or may not have been placed. "
    "Check open orders before trying again."
)


# ============================================================
# VALIDATION
# ============================================================

def parse_amount(value: Any, minimum: Decimal, field_name: str) -> Decimal:
    """
    Parse and sanity-check a caller-supplied amount.

    Args:
        value: Raw amount (string or number)
        minimum: Smallest accepted value
        field_name: Name used in the error

    Returns:
        Decimal amount

    Raises:
        ValidationError: Non-numeric, non-finite, non-positive or below minimum
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required", field_name=field_name)

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}", field_name=field_name)

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite", field_name=field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name} must be positive", field_name=field_name)
    if amount < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}", field_name=field_name)

    return amount


def validate_product_id(product_id: Any) -> str:
    """Normalize BASE-QUOTE product IDs."""
    text = str(product_id or "").strip().upper()
    parts = text.split("-")
    if len(parts) != 2 or not all(parts):
        raise ValidationError(f"Invalid product ID: {product_id!r}", field_name="product_id")
    return text


# ============================================================
# ORDER SERVICE
# ============================================================

class OrderService:
    """
    Order preview and market order placement.
    """

    def __init__(
        self,
        client: AuthenticatedRequestClient,
        market_data: MarketDataService,
        config: Optional[OrderConfig] = None,
    ):
        self._client = client
        self._market_data = market_data
        self._config = config or client.config.orders
        self._log = GatewayLogger("trading_gateway.orders")

    # --------------------------------------------------------
    # PREVIEW
    # --------------------------------------------------------

    async def preview(self, product_id: str, side: Any, amount: Any) -> OrderPreview:
        """
        Estimate fee and proceeds for a market order.

        BUY amounts are quote currency; SELL amounts are base currency.
        The only network use is fetching the current price.
        """
        product_id = validate_product_id(product_id)
        side = OrderSide.parse(side)
        amount = parse_amount(amount, Decimal("0"), "amount")

        price_info = await self._market_data.get_product_price(product_id)
        return self.compute_preview(product_id, side, amount, price_info.price)

    def compute_preview(
        self,
        product_id: str,
        side: OrderSide,
        amount: Decimal,
        current_price: Decimal,
    ) -> OrderPreview:
        """Pure preview arithmetic."""
        fee_rate = self._config.preview_fee_rate

        if side == OrderSide.BUY:
            fee = amount * fee_rate
            net = amount - fee
            return OrderPreview(
                product_id=product_id,
                side=side,
                quote_amount=amount,
                estimated_fee=fee,
                net_amount=net,
                estimated_quantity=net / current_price,
                current_price=current_price,
            )

        quote_amount = amount * current_price
        fee = quote_amount * fee_rate
        return OrderPreview(
            product_id=product_id,
            side=side,
            base_amount=amount,
            quote_amount=quote_amount,
            estimated_fee=fee,
            net_amount=quote_amount - fee,
            current_price=current_price,
        )

    # --------------------------------------------------------
    # PLACEMENT
    # --------------------------------------------------------

    async def place_buy(self, product_id: str, quote_funds: Any) -> OrderResult:
        """Market BUY spending quote_funds of the quote currency."""
        product_id = validate_product_id(product_id)
        amount = parse_amount(quote_funds, self._config.min_quote_funds, "funds")
        return await self._place(product_id, OrderSide.BUY, {"quote_size": str(amount)})

    async def place_sell(self, product_id: str, base_size: Any) -> OrderResult:
        """Market SELL of base_size of the base currency."""
        product_id = validate_product_id(product_id)
        amount = parse_amount(base_size, self._config.min_base_size, "size")
        return await self._place(product_id, OrderSide.SELL, {"base_size": str(amount)})

    async def _place(
        self,
        product_id: str,
        side: OrderSide,
        sizing: Dict[str, str],
    ) -> OrderResult:
        client_order_id = str(uuid.uuid4())
        body = {
            "client_order_id": client_order_id,
            "product_id": product_id,
            "side": side.value,
            "order_configuration": {"market_market_ioc": sizing},
        }
        operation = f"place_{side.value.lower()}"
        amount = next(iter(sizing.values()))
        logger.info(f"Submitting {side.value} {product_id} {amount} ({client_order_id})")

        try:
            response = await self._client.request(
                "POST",
                self._client.config.endpoints.brokerage_path("/orders"),
                body=body,
                operation=operation,
            )
        except ExchangeApiError as e:
            result = OrderResult(
                outcome=OrderOutcome.REJECTED,
                client_order_id=client_order_id,
                error_message=extract_error_message(e.body) or GENERIC_ORDER_ERROR,
                raw_response=e.body if isinstance(e.body, dict) else {},
            )
        except RequestTimeoutError:
            result = self._unknown(client_order_id)
        except NetworkError as e:
            if e.request_sent:
                result = self._unknown(client_order_id)
            else:
                result = OrderResult(
                    outcome=OrderOutcome.REJECTED,
                    client_order_id=client_order_id,
                    error_message=str(e),
                )
        else:
            result = self._from_response(client_order_id, response.data)

        self._log.log_order(
            operation=operation,
            client_order_id=client_order_id,
            product_id=product_id,
            side=side.value,
            amount=amount,
            outcome=result.outcome.value,
            order_id=result.order_id,
            error_message=result.error_message,
        )
        return result

    @staticmethod
    def _unknown(client_order_id: str) -> OrderResult:
        return OrderResult(
            outcome=OrderOutcome.UNKNOWN,
            client_order_id=client_order_id,
            error_message=UNKNOWN_OUTCOME_MESSAGE,
        )

    @staticmethod
    def _from_response(client_order_id: str, data: Any) -> OrderResult:
        """Interpret a 2xx create-order body."""
        data = data if isinstance(data, dict) else {}

        if data.get("success") is False:
            return OrderResult(
                outcome=OrderOutcome.REJECTED,
                client_order_id=client_order_id,
                error_message=extract_error_message(data) or GENERIC_ORDER_ERROR,
                raw_response=data,
            )

        success_response = data.get("success_response") or {}
        order_id = success_response.get("order_id") or data.get("order_id")

        return OrderResult(
            outcome=OrderOutcome.ACCEPTED,
            client_order_id=client_order_id,
            order_id=order_id,
            raw_response=data,
        )

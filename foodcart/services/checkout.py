"""
Checkout Orchestrator

Turns the current cart into a server-side order and, for online payment,
a redirect to the payment gateway.

Ordering guarantees:
    1. Preconditions (address, non-empty cart) are checked before any network call
    2. The cart is left untouched when order creation fails
    3. Once an order exists the cart is cleared, whatever happens to payment

Author: Khalil_Bannouri
Version: 1.0.0
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from foodcart.errors import (
    CheckoutInProgressError,
    CheckoutPreconditionError,
    FoodCartError,
    InvalidResponseError,
    OrderCreationError,
    OrderOutcomeUnknownError,
)
from foodcart.models import PaymentMethod
from foodcart.schemas import (
    Cart,
    DeliveryAddress,
    OrderCreatePayload,
    OrderItemPayload,
)
from foodcart.services.cart import CartEngine
from foodcart.services.orders import OrderService
from foodcart.services.payment import BasePaymentGateway, PaymentReturnResult, PaymentUrlResult

logger = logging.getLogger(__name__)


class PreconditionCode(str, enum.Enum):
    MISSING_ADDRESS = "missing_address"
    EMPTY_CART = "empty_cart"


@dataclass(frozen=True)
class PreconditionFailure:
    code: PreconditionCode
    message: str


@dataclass
class OrderConfirmation:
    """Cash-on-delivery order placed; show the confirmation screen."""
    order_id: str
    total: float

    def to_dict(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "total": self.total}


@dataclass
class PaymentHandoff:
    """
    Online order placed; hand off to the payment-result view.

    payment_url is None when payment initiation failed. The view then offers
    a retry for the same order_id.
    """
    order_id: str
    total: float
    payment_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def can_redirect(self) -> bool:
        return self.payment_url is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "total": self.total,
            "payment_url": self.payment_url,
            "error": self.error,
        }


CheckoutResult = Union[OrderConfirmation, PaymentHandoff]


def build_order_payload(
    cart: Cart,
    address: DeliveryAddress,
    payment_method: PaymentMethod,
    notes: Optional[str] = None,
    scheduled_for: Optional[datetime] = None,
) -> OrderCreatePayload:
    """
    Map the cart to the POST /orders body.

    Only ids, quantities and option snapshots are sent. Prices and totals stay
    on the client; the server computes its own.
    """
    return OrderCreatePayload(
        restaurant_id=cart.restaurant_id,
        items=[
            OrderItemPayload(
                menu_item_id=item.menu_item_id,
                quantity=item.quantity,
                options=list(item.options),
            )
            for item in cart.items
        ],
        delivery_address=address,
        payment_method=payment_method,
        notes=notes or None,
        scheduled_for=scheduled_for,
    )


class CheckoutOrchestrator:
    """
    Example:
        >>> checkout = CheckoutOrchestrator(cart_engine, OrderService(api), gateway)
        >>> result = await checkout.place_order(address, PaymentMethod.ONLINE_GATEWAY)
        >>> if isinstance(result, PaymentHandoff) and result.can_redirect:
        ...     open_browser(result.payment_url)
    """

    def __init__(
        self,
        cart_engine: CartEngine,
        orders: OrderService,
        gateway: BasePaymentGateway,
    ):
        self._cart_engine = cart_engine
        self._orders = orders
        self._gateway = gateway
        self._submitting = False

    @property
    def submitting(self) -> bool:
        return self._submitting

    # =========================================================================
    # PRECONDITIONS
    # =========================================================================

    def check_preconditions(
        self, address: Optional[DeliveryAddress]
    ) -> list[PreconditionFailure]:
        failures = []
        if address is None or not address.address.strip():
            failures.append(PreconditionFailure(
                PreconditionCode.MISSING_ADDRESS,
                "Please select a delivery address",
            ))
        if self._cart_engine.cart.is_empty:
            failures.append(PreconditionFailure(
                PreconditionCode.EMPTY_CART,
                "Your cart is empty",
            ))
        return failures

    def can_place_order(self, address: Optional[DeliveryAddress]) -> bool:
        return not self.check_preconditions(address)

    # =========================================================================
    # PLACE ORDER
    # =========================================================================

    async def place_order(
        self,
        address: Optional[DeliveryAddress],
        payment_method: PaymentMethod,
        notes: Optional[str] = None,
        scheduled_for: Optional[datetime] = None,
    ) -> CheckoutResult:
        """
        Submit the current cart.

        Raises:
            CheckoutInProgressError: Another submission is running
            CheckoutPreconditionError: Address missing or cart empty (no request sent)
            OrderCreationError: The server rejected or never answered; cart kept
            OrderOutcomeUnknownError: The server answered 2xx with an unreadable body; cart kept
        """
        if self._submitting:
            raise CheckoutInProgressError()

        failures = self.check_preconditions(address)
        if failures:
            raise CheckoutPreconditionError(failures)

        self._submitting = True
        try:
            payload = build_order_payload(
                self._cart_engine.cart,
                address,
                payment_method,
                notes=notes,
                scheduled_for=scheduled_for,
            )

            try:
                created = await self._orders.create_order(payload)
            except InvalidResponseError as e:
                logger.error(f"Order outcome unknown, keeping cart: {e}")
                raise OrderOutcomeUnknownError(e) from e
            except FoodCartError as e:
                logger.error(f"Order creation failed: {e}")
                raise OrderCreationError(e) from e

            if payment_method == PaymentMethod.CASH_ON_DELIVERY:
                self._cart_engine.clear_cart()
                return OrderConfirmation(order_id=created.order_id, total=created.total)

            payment = await self._gateway.create_payment_url(created.order_id, created.total)
            self._cart_engine.clear_cart()
            return self._handoff(created.order_id, created.total, payment)
        finally:
            self._submitting = False

    # =========================================================================
    # PAYMENT
    # =========================================================================

    def _handoff(self, order_id: str, total: float, payment: PaymentUrlResult) -> PaymentHandoff:
        if not payment.success:
            logger.warning(
                f"Payment initiation failed for order {order_id}: "
                f"{payment.error_code} {payment.error_message}"
            )
            return PaymentHandoff(order_id=order_id, total=total, error=payment.error_message)
        return PaymentHandoff(order_id=order_id, total=total, payment_url=payment.payment_url)

    async def retry_payment(self, order_id: str, amount: float) -> PaymentHandoff:
        """Request a fresh redirect URL for an order whose payment did not go through."""
        payment = await self._gateway.create_payment_url(order_id, amount)
        return self._handoff(order_id, amount, payment)

    async def complete_payment(self, query_params: dict[str, str]) -> PaymentReturnResult:
        """Resolve the gateway redirect into a final payment result."""
        result = await self._gateway.process_return(query_params)
        if result.success:
            logger.info(f"Payment completed for order {result.order_id}")
        else:
            logger.warning(f"Payment not completed for order {result.order_id}: {result.code}")
        return result

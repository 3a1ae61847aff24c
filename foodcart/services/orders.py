"""
Order Service

Authenticated wrappers around the order endpoints. Every call goes through
AuthenticatedClient, so an expired access token is refreshed transparently.

Customer-side status gates (cancel, rate) are checked locally before the
request is sent; the server still has the final word.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from foodcart.errors import InvalidResponseError, OrderActionNotAllowed
from foodcart.models import OrderAction, OrderStatus, is_action_allowed
from foodcart.schemas import (
    OrderCreatePayload,
    OrderCreateResponse,
    OrderListPage,
    OrderRating,
    OrderSummary,
)
from foodcart.services.http import unwrap_result

logger = logging.getLogger(__name__)


class OrderService:
    """
    Read and write orders for the signed-in customer.

    Example:
        >>> orders = OrderService(session.api)
        >>> page = await orders.list_user_orders(status=OrderStatus.DELIVERED)
        >>> detail = await orders.get_order(page.orders[0].id)
    """

    def __init__(self, api):
        self._api = api

    async def create_order(self, payload: OrderCreatePayload) -> OrderCreateResponse:
        """
        POST /orders.

        The server re-prices every item; the returned total is authoritative.
        """
        body = await self._api.post("/orders", json=payload.to_wire())
        try:
            created = OrderCreateResponse.model_validate(unwrap_result(body))
        except ValidationError as e:
            logger.error(f"Unreadable order creation response: {e.error_count()} errors")
            raise InvalidResponseError(
                "Order creation response is missing order_id or total", body=body
            ) from e
        logger.info(f"Order {created.order_id} created (total={created.total})")
        return created

    async def get_order(self, order_id: str) -> OrderSummary:
        body = await self._api.get(f"/orders/{order_id}")
        return OrderSummary.model_validate(unwrap_result(body))

    async def list_user_orders(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> OrderListPage:
        """GET /orders/user, newest first by default."""
        params: dict[str, Any] = {
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }
        if status is not None:
            params["status"] = int(status)

        body = await self._api.get("/orders/user", params=params)
        return OrderListPage.model_validate(unwrap_result(body) or {})

    async def cancel_order(self, order: OrderSummary, reason: str) -> Any:
        """
        Cancel a pending order.

        Raises:
            OrderActionNotAllowed: The order is past the point of customer cancel
        """
        if not is_action_allowed(OrderAction.CANCEL, order.order_status, order.is_rated):
            raise OrderActionNotAllowed(OrderAction.CANCEL.value, order.order_status)

        body = await self._api.post(f"/orders/{order.id}/cancel", json={"reason": reason})
        logger.info(f"Order {order.id} cancelled by customer")
        return unwrap_result(body)

    async def rate_order(self, order: OrderSummary, rating: OrderRating) -> Any:
        """
        Rate a delivered, not yet rated order.

        Raises:
            OrderActionNotAllowed: The order is not delivered or already rated
        """
        if not is_action_allowed(OrderAction.RATE, order.order_status, order.is_rated):
            raise OrderActionNotAllowed(OrderAction.RATE.value, order.order_status)

        body = await self._api.post(f"/orders/{order.id}/rate", json=rating.to_wire())
        return unwrap_result(body)

    async def get_tracking(self, order_id: str) -> Any:
        """Latest delivery tracking record for an active order."""
        body = await self._api.get(f"/orders/{order_id}/tracking")
        return unwrap_result(body)

"""
VNPay Payment Gateway Implementation

Production implementation that goes through the ordering API, which holds
the VNPay merchant credentials and signs the redirect URL.
Used when ENV_MODE=production or ENV_MODE=staging.

Endpoints:
    - POST /payments/create-payment-url → {"result": {"paymentUrl": ...}}
    - GET /payments/vnpay-return → {"code", "message", "data": {...}}
    - GET /payments/vnpay-ipn → {"RspCode", "Message"}

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Optional

from foodcart.errors import ApiError, FoodCartError, NetworkError
from foodcart.models import OrderStatus, PaymentStatus
from foodcart.services.http import unwrap_result
from foodcart.services.payment.base import (
    SUCCESS_CODE,
    BasePaymentGateway,
    PaymentReturnResult,
    PaymentUrlResult,
    response_message,
)

logger = logging.getLogger(__name__)


def _normalize_code(raw: Any) -> str:
    """The server reports codes as numbers or strings; use the 2-digit form."""
    if raw is None:
        return "99"
    try:
        return f"{int(raw):02d}"
    except (TypeError, ValueError):
        return str(raw)


def _optional_enum(enum_cls, raw: Any):
    if raw is None:
        return None
    try:
        return enum_cls(int(raw))
    except (TypeError, ValueError):
        return None


class VNPayGateway(BasePaymentGateway):
    """
    VNPay gateway reached through the backend.

    Args:
        api: An AuthenticatedClient (payment endpoints require a session)

    Example:
        >>> gateway = VNPayGateway(session.api)
        >>> result = await gateway.create_payment_url("66f0...", 150000)
    """

    def __init__(self, api):
        self._api = api
        logger.info("VNPayGateway initialized")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "vnpay"

    @staticmethod
    def _elapsed_ms(start_time: datetime) -> float:
        return (datetime.now() - start_time).total_seconds() * 1000

    async def create_payment_url(
        self,
        order_id: str,
        amount: float,
        order_info: Optional[str] = None,
    ) -> PaymentUrlResult:
        """Ask the backend to sign a VNPay redirect URL for the order."""
        start_time = datetime.now()

        if amount <= 0:
            return PaymentUrlResult(
                success=False,
                order_id=order_id,
                amount=amount,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        logger.info(f"VNPay: Creating payment URL for order {order_id}")

        try:
            body = await self._api.post(
                "/payments/create-payment-url",
                json={
                    "orderId": order_id,
                    "amount": amount,
                    "orderInfo": order_info or f"Payment for order {order_id}",
                },
            )
        except NetworkError as e:
            logger.error(f"VNPay: No response creating payment URL - {e}")
            return PaymentUrlResult(
                success=False,
                order_id=order_id,
                amount=amount,
                error_message=e.user_message,
                error_code="network_error",
                response_time_ms=self._elapsed_ms(start_time),
            )
        except FoodCartError as e:
            logger.error(f"VNPay: Create payment URL error - {e}")
            return PaymentUrlResult(
                success=False,
                order_id=order_id,
                amount=amount,
                error_message=e.user_message,
                error_code="api_error",
                response_time_ms=self._elapsed_ms(start_time),
            )

        result = unwrap_result(body) or {}
        payment_url = result.get("paymentUrl") if isinstance(result, dict) else None

        if not payment_url:
            logger.error(f"VNPay: Response for order {order_id} has no paymentUrl")
            return PaymentUrlResult(
                success=False,
                order_id=order_id,
                amount=amount,
                error_message="Payment gateway returned no redirect URL",
                error_code="missing_url",
                response_time_ms=self._elapsed_ms(start_time),
            )

        return PaymentUrlResult(
            success=True,
            order_id=order_id,
            payment_url=payment_url,
            amount=amount,
            response_time_ms=self._elapsed_ms(start_time),
        )

    async def process_return(self, params: dict[str, str]) -> PaymentReturnResult:
        """Forward the redirect parameters to /payments/vnpay-return."""
        start_time = datetime.now()

        try:
            body = await self._api.get("/payments/vnpay-return", params=params)
        except FoodCartError as e:
            logger.error(f"VNPay: Process payment return error - {e}")
            return PaymentReturnResult(
                success=False,
                code="99",
                message=e.user_message,
                order_id=params.get("vnp_TxnRef"),
                response_time_ms=self._elapsed_ms(start_time),
            )

        body = body if isinstance(body, dict) else {}
        data = body.get("data") or {}
        code = _normalize_code(body.get("code"))

        result = PaymentReturnResult(
            success=code == SUCCESS_CODE,
            code=code,
            message=body.get("message") or response_message(code),
            order_id=data.get("orderId"),
            payment_status=_optional_enum(PaymentStatus, data.get("paymentStatus")),
            order_status=_optional_enum(OrderStatus, data.get("orderStatus")),
            response_time_ms=self._elapsed_ms(start_time),
        )

        logger.info(f"VNPay: Return for order {result.order_id} - code {code}")
        return result

    async def verify_ipn(self, params: dict[str, str]) -> PaymentReturnResult:
        """Forward an IPN to /payments/vnpay-ipn."""
        start_time = datetime.now()

        try:
            body = await self._api.get("/payments/vnpay-ipn", params=params)
        except FoodCartError as e:
            logger.error(f"VNPay: IPN forwarding error - {e}")
            return PaymentReturnResult(
                success=False,
                code="99",
                message=e.user_message,
                response_time_ms=self._elapsed_ms(start_time),
            )

        body = body if isinstance(body, dict) else {}
        code = _normalize_code(body.get("RspCode"))

        return PaymentReturnResult(
            success=code == SUCCESS_CODE,
            code=code,
            message=body.get("Message") or response_message(code),
            order_id=body.get("orderId"),
            payment_status=_optional_enum(PaymentStatus, body.get("paymentStatus")),
            response_time_ms=self._elapsed_ms(start_time),
        )

    async def health_check(self) -> bool:
        """Any HTTP answer from the backend counts as reachable."""
        try:
            await self._api.get("/")
        except NetworkError as e:
            logger.error(f"VNPay: Health check failed - {e}")
            return False
        except ApiError as e:
            logger.debug(f"VNPay: Health check got HTTP {e.status_code}")
        logger.debug("VNPay: Health check passed")
        return True

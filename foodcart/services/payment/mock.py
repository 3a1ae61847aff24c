"""
Mock Payment Gateway Implementation

Simulates the VNPay redirect flow without contacting the backend.
Used in development mode (ENV_MODE=development) to:
    - Exercise the online-payment checkout branch locally
    - Test payment failure and retry screens
    - Develop without a merchant account

Behavior:
    - Simulates realistic response times
    - Randomly declines a configurable share of payments on return
    - Generates VNPay-like redirect URLs and transaction refs
    - Supports all interface methods

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import random
import uuid
from typing import Optional
from urllib.parse import urlencode

from foodcart.models import OrderStatus, PaymentStatus
from foodcart.services.payment.base import (
    SUCCESS_CODE,
    BasePaymentGateway,
    PaymentReturnResult,
    PaymentUrlResult,
    response_message,
)

logger = logging.getLogger(__name__)


class MockPaymentGateway(BasePaymentGateway):
    """
    Mock implementation of the payment gateway.

    Attributes:
        failure_rate: Probability that a returned payment is declined (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> gateway = MockPaymentGateway(failure_rate=0.0, min_latency=0, max_latency=0)
        >>> result = await gateway.create_payment_url("order-1", 120000)
        >>> result.payment_url.startswith(MockPaymentGateway.BASE_URL)
        True
    """

    BASE_URL = "https://sandbox.mock-vnpay.local/paymentv2/vpcpay.html"

    # Simulated decline codes (mimic real VNPay return codes)
    DECLINE_CODES = ["05", "06", "09", "11", "24", "51"]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self._issued: dict[str, tuple[str, float]] = {}

        logger.info(
            f"MockPaymentGateway initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def _generate_txn_ref(self) -> str:
        return f"mock_{uuid.uuid4().hex[:20]}"

    async def _simulate_latency(self) -> float:
        """
        Simulate network latency.

        Returns:
            float: Actual latency in milliseconds
        """
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_payment_url(
        self,
        order_id: str,
        amount: float,
        order_info: Optional[str] = None,
    ) -> PaymentUrlResult:
        """Issue a fake redirect URL carrying a transaction reference."""
        latency_ms = await self._simulate_latency()

        if amount <= 0:
            return PaymentUrlResult(
                success=False,
                order_id=order_id,
                amount=amount,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        txn_ref = self._generate_txn_ref()
        self._issued[txn_ref] = (order_id, amount)

        query = urlencode({
            "vnp_TxnRef": txn_ref,
            "vnp_Amount": int(round(amount * 100)),
            "vnp_OrderInfo": order_info or f"Payment for order {order_id}",
        })

        logger.debug(f"Mock: Created payment URL for order {order_id} ({txn_ref})")

        return PaymentUrlResult(
            success=True,
            order_id=order_id,
            payment_url=f"{self.BASE_URL}?{query}",
            amount=amount,
            response_time_ms=latency_ms,
        )

    async def process_return(self, params: dict[str, str]) -> PaymentReturnResult:
        """
        Resolve a fake return.

        An explicit vnp_ResponseCode in `params` wins; otherwise the outcome is
        drawn from failure_rate.
        """
        latency_ms = await self._simulate_latency()

        txn_ref = params.get("vnp_TxnRef", "")
        issued = self._issued.get(txn_ref)
        if issued is None:
            return PaymentReturnResult(
                success=False,
                code="01",
                message=response_message("01"),
                response_time_ms=latency_ms,
            )

        order_id, _amount = issued
        code = params.get("vnp_ResponseCode")
        if code is None:
            code = random.choice(self.DECLINE_CODES) if self._should_fail() else SUCCESS_CODE

        success = code == SUCCESS_CODE
        logger.info(f"Mock: Payment for order {order_id} - code {code}")

        return PaymentReturnResult(
            success=success,
            code=code,
            message=response_message(code),
            order_id=order_id,
            payment_status=PaymentStatus.COMPLETED if success else PaymentStatus.FAILED,
            order_status=OrderStatus.CONFIRMED if success else OrderStatus.PENDING,
            response_time_ms=latency_ms,
        )

    async def verify_ipn(self, params: dict[str, str]) -> PaymentReturnResult:
        """IPN in mock mode resolves like a return."""
        return await self.process_return(params)

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Health check passed")
        return True

"""
Payment Gateway Abstract Base Class

Defines the interface contract for redirect-based online payment.
Both MockPaymentGateway and VNPayGateway must implement these methods,
so the checkout flow behaves identically whichever one is active.

Flow:
    1. create_payment_url() after the order exists
    2. The user completes payment on the gateway page
    3. process_return() with the redirect query parameters

Design Pattern: Strategy Pattern
    - Allows runtime switching between gateway implementations
    - Facilitates testing with mock implementations

Author: Khalil_Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from foodcart.models import OrderStatus, PaymentStatus


SUCCESS_CODE = "00"

RESPONSE_MESSAGES = {
    "00": "Payment successful",
    "01": "Order not found",
    "02": "Order already paid",
    "04": "Invalid amount",
    "05": "Payment timeout",
    "06": "Payment failed",
    "07": "Transaction already processed",
    "09": "Transaction failed",
    "10": "Technical error",
    "11": "User cancelled",
    "24": "User cancelled",
    "51": "User authentication failed",
    "65": "User cancelled",
    "75": "Authentication failed too many times",
    "79": "Authentication failed too many times",
    "97": "Invalid signature",
    "99": "Unknown error",
}


def response_message(code: Optional[str]) -> str:
    """Human-readable message for a gateway response code."""
    return RESPONSE_MESSAGES.get(code or "", "Unknown error")


@dataclass
class PaymentUrlResult:
    """
    Standardized result from payment initiation.

    Attributes:
        success: Whether a redirect URL was obtained
        order_id: Order the payment is for
        payment_url: Gateway page the user must be sent to
        amount: Amount requested
        error_message: Error description if initiation failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the gateway call
    """
    success: bool
    order_id: str
    payment_url: Optional[str] = None
    amount: Optional[float] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "order_id": self.order_id,
            "payment_url": self.payment_url,
            "amount": self.amount,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class PaymentReturnResult:
    """
    Standardized result after the gateway redirected back.

    Attributes:
        success: True only for response code "00"
        code: Gateway response code
        message: Human-readable outcome
        order_id: Order the payment belongs to
        payment_status: Payment status reported by the server
        order_status: Order status reported by the server
    """
    success: bool
    code: str
    message: str
    order_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    order_status: Optional[OrderStatus] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "code": self.code,
            "message": self.message,
            "order_id": self.order_id,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "response_time_ms": self.response_time_ms,
        }


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> gateway = create_payment_gateway(session.api)
        >>> result = await gateway.create_payment_url("order-1", 150000)
        >>> if result.success:
        ...     open_browser(result.payment_url)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "mock", "vnpay")
        """
        pass

    @abstractmethod
    async def create_payment_url(
        self,
        order_id: str,
        amount: float,
        order_info: Optional[str] = None,
    ) -> PaymentUrlResult:
        """
        Request a payment redirect URL for an existing order.

        Args:
            order_id: Server id of the order being paid
            amount: Server-computed order total
            order_info: Description shown on the gateway page

        Returns:
            PaymentUrlResult: Standardized result object
        """
        pass

    @abstractmethod
    async def process_return(self, params: dict[str, str]) -> PaymentReturnResult:
        """
        Report the gateway redirect parameters to the server.

        Args:
            params: Query parameters the gateway appended to the return URL

        Returns:
            PaymentReturnResult: Outcome of the payment
        """
        pass

    @abstractmethod
    async def verify_ipn(self, params: dict[str, str]) -> PaymentReturnResult:
        """
        Forward an instant payment notification to the server.

        Args:
            params: Notification query parameters

        Returns:
            PaymentReturnResult: The server's acknowledgement
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the gateway.

        Returns:
            bool: True if the gateway is reachable
        """
        pass

"""
Payment Gateway Factory

Provides a single entry point for obtaining a payment gateway instance.
The factory keeps checkout agnostic of which implementation is used.

Usage:
    from foodcart.services.payment import create_payment_gateway

    # Returns MockPaymentGateway or VNPayGateway based on ENV_MODE
    gateway = create_payment_gateway(session.api)

    result = await gateway.create_payment_url(order_id, total)

The factory does not cache: the owner of the session (AppState) builds one
gateway and keeps it for the session's lifetime.

Environment Switching:
    - ENV_MODE=development → MockPaymentGateway (no API calls)
    - ENV_MODE=staging → VNPayGateway (sandbox merchant on the backend)
    - ENV_MODE=production → VNPayGateway

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from foodcart.core.config import Settings, get_settings
from foodcart.services.payment.base import (
    BasePaymentGateway,
    PaymentReturnResult,
    PaymentUrlResult,
    response_message,
)
from foodcart.services.payment.mock import MockPaymentGateway
from foodcart.services.payment.vnpay import VNPayGateway

logger = logging.getLogger(__name__)


def create_payment_gateway(api, settings: Optional[Settings] = None) -> BasePaymentGateway:
    """
    Build the configured payment gateway for an authenticated client.

    Args:
        api: AuthenticatedClient used by the real gateway
        settings: Settings to read ENV_MODE from (defaults to get_settings())

    Returns:
        BasePaymentGateway: A new gateway instance
    """
    settings = settings or get_settings()

    if settings.is_development:
        logger.info("Payment Gateway: Using MockPaymentGateway (development mode)")
        return MockPaymentGateway(
            failure_rate=settings.mock_payment_failure_rate,
            min_latency=0.2,
            max_latency=0.8,
        )

    logger.info(
        f"Payment Gateway: Using VNPayGateway "
        f"({settings.env_mode.value} mode)"
    )
    return VNPayGateway(api)


__all__ = [
    "create_payment_gateway",
    "BasePaymentGateway",
    "PaymentUrlResult",
    "PaymentReturnResult",
    "MockPaymentGateway",
    "VNPayGateway",
    "response_message",
]

"""
Application State

Wires the services into one object with an explicit lifecycle:

    async with AppState() as app:
        app.cart.add_item(...)
        await app.checkout.place_order(...)

start() loads the persisted cart and restores the session; close() drains
pending cart writes and closes the HTTP pool.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

import httpx

from foodcart.core.config import Settings, get_settings
from foodcart.services.auth import SessionManager
from foodcart.services.cart import CartEngine
from foodcart.services.checkout import CheckoutOrchestrator
from foodcart.services.http import ApiClient
from foodcart.services.orders import OrderService
from foodcart.services.payment import BasePaymentGateway, create_payment_gateway
from foodcart.services.storage import BaseKeyValueStore, get_storage

logger = logging.getLogger(__name__)


class AppState:
    """
    Owns one instance of every service.

    Args:
        settings: Defaults to get_settings()
        store: Defaults to the configured storage backend
        transport: Optional httpx transport (tests pass a MockTransport)
        gateway: Defaults to the configured payment gateway
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[BaseKeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        gateway: Optional[BasePaymentGateway] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or get_storage()

        self.client = ApiClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            transport=transport,
        )
        self.session = SessionManager(self.client, self.store)
        self.cart = CartEngine(self.store)
        self.orders = OrderService(self.session.api)
        self.gateway = gateway or create_payment_gateway(self.session.api, self.settings)
        self.checkout = CheckoutOrchestrator(self.cart, self.orders, self.gateway)

        self._started = False

    async def start(self) -> "AppState":
        if self._started:
            return self

        await self.cart.load()
        user = await self.session.restore()

        self._started = True
        logger.info(
            f"{self.settings.app_name} started "
            f"(user={'yes' if user else 'none'}, cart_items={len(self.cart.cart.items)})"
        )
        return self

    async def close(self) -> None:
        await self.cart.close()
        await self.client.aclose()
        self._started = False
        logger.info(f"{self.settings.app_name} stopped")

    async def __aenter__(self) -> "AppState":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

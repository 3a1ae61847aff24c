"""Tests for application state wiring and lifecycle"""
import pytest

from conftest import FakeBackend, envelope, reply
from foodcart.services.storage import ACCESS_TOKEN_KEY, CART_KEY, REFRESH_TOKEN_KEY, MemoryKeyValueStore
from foodcart.state import AppState


@pytest.mark.asyncio
async def test_start_restores_cart_and_session(sample_profile):
    backend = FakeBackend()
    backend.add("GET", "/users/profile", reply(200, envelope(sample_profile)))
    store = MemoryKeyValueStore({
        ACCESS_TOKEN_KEY: "access-1",
        REFRESH_TOKEN_KEY: "refresh-1",
        CART_KEY: (
            '{"restaurantId": "R1", "restaurantName": "Pho 24", "items": '
            '[{"menuItemId": "A", "quantity": 2, "totalPrice": 20}], "deliveryFee": 2}'
        ),
    })

    async with AppState(store=store, transport=backend.transport) as app:
        assert app.session.is_authenticated
        assert app.cart.loaded
        assert app.cart.cart.total == 22.0
        assert app.gateway.provider_name == "mock"


@pytest.mark.asyncio
async def test_close_flushes_pending_cart_writes(sample_item):
    store = MemoryKeyValueStore()
    app = AppState(store=store, transport=FakeBackend().transport)
    await app.start()

    app.cart.add_item("R1", "Pho 24", sample_item)
    await app.close()

    assert CART_KEY in store.snapshot()


@pytest.mark.asyncio
async def test_start_without_stored_session_stays_signed_out():
    backend = FakeBackend()
    async with AppState(store=MemoryKeyValueStore(), transport=backend.transport) as app:
        assert not app.session.is_authenticated
        assert app.cart.cart.is_empty
    assert backend.requests == []

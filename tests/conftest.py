"""Pytest configuration and fixtures"""
import os
from typing import Any, Callable, Optional, Union

import httpx
import pytest

# Set test environment variables
os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("API_BASE_URL", "http://api.test")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("MOCK_PAYMENT_FAILURE_RATE", "0")

from foodcart.core.config import get_settings  # noqa: E402
from foodcart.schemas import TokenPair, UserProfile  # noqa: E402
from foodcart.services.auth import SessionManager  # noqa: E402
from foodcart.services.cart import CartEngine  # noqa: E402
from foodcart.services.http import ApiClient  # noqa: E402
from foodcart.services.storage import MemoryKeyValueStore, reset_storage  # noqa: E402


BASE_URL = "http://api.test"

Responder = Union[Callable[[httpx.Request], httpx.Response], Exception]


def reply(status_code: int = 200, body: Any = None) -> Callable[[httpx.Request], httpx.Response]:
    """Responder returning a fresh JSON response on every call."""
    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)
    return respond


def envelope(result: Any, message: str = "OK") -> dict:
    return {"message": message, "result": result}


class FakeBackend:
    """
    Route table behind an httpx.MockTransport.

    Each route holds a queue of responders. Responders are consumed in order
    and the last one repeats. Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[Responder]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responders: Responder) -> "FakeBackend":
        self.routes.setdefault((method.upper(), path), []).extend(responders)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(responder, Exception):
            raise responder
        return responder(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def authenticate(
    session: SessionManager,
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
    user_id: str = "user-123",
) -> None:
    """Put a session into the authenticated state without network calls."""
    session._apply_tokens(TokenPair(access_token=access_token, refresh_token=refresh_token))
    session._user = UserProfile(id=user_id, name="Test User", email="test@example.com")


@pytest.fixture(autouse=True)
def _reset_caches():
    get_settings.cache_clear()
    reset_storage()
    yield
    get_settings.cache_clear()
    reset_storage()


@pytest.fixture
def store():
    """Empty in-memory key-value store"""
    return MemoryKeyValueStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    """ApiClient wired to the fake backend"""
    return ApiClient(base_url=BASE_URL, timeout=5.0, transport=backend.transport)


@pytest.fixture
def session(client, store):
    return SessionManager(client, store)


@pytest.fixture
def cart_engine(store):
    return CartEngine(store)


@pytest.fixture
def sample_item():
    """One plain menu item at 10.0"""
    return {"menuItemId": "A", "name": "Banh Mi", "quantity": 1, "totalPrice": 10.0}


@pytest.fixture
def sample_options():
    return [{"title": "Size", "items": [{"name": "Large", "price": 5.0}]}]


@pytest.fixture
def sample_profile():
    """Sample user profile as returned by GET /users/profile"""
    return {
        "_id": "user-123",
        "name": "Test User",
        "email": "test@example.com",
        "role": 0,
        "phone": "0900000000",
        "verify": 1,
    }


@pytest.fixture
def sample_address():
    from foodcart.schemas import DeliveryAddress
    return DeliveryAddress(address="12 Nguyen Hue, District 1", lat=10.7769, lng=106.7009)


def bearer_of(request: httpx.Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    return header[len("Bearer "):] if header.startswith("Bearer ") else None

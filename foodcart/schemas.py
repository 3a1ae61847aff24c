"""
Pydantic Schemas for Client State and API Payloads

Covers:
- Cart snapshot (persisted under the "cart" key in camelCase)
- Order creation payload and response
- Auth tokens and user profile
- Server order read model

Author: Khalil_Bannouri
Version: 1.0.0
"""

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from foodcart.models import OrderStatus, PaymentMethod, PaymentStatus, UserRole


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# CART
# =============================================================================

class OptionChoice(CamelModel):
    """One chosen modifier inside an option group."""
    model_config = ConfigDict(frozen=True)

    name: str
    price: float = 0.0


class OptionSelection(CamelModel):
    """Snapshot of an option group as chosen at add-time."""
    model_config = ConfigDict(frozen=True)

    title: str
    items: List[OptionChoice] = Field(default_factory=list)


def serialize_options(options: List[OptionSelection]) -> str:
    """Canonical string form of an option list, used for merge identity."""
    return json.dumps(
        [option.model_dump(mode="json") for option in options],
        sort_keys=True,
        separators=(",", ":"),
    )


class CartLineItem(CamelModel):
    """
    One distinct product+options selection in the cart.

    total_price is the per-unit price (options included) times quantity.
    Instances are never mutated; the cart engine replaces them.
    """
    model_config = ConfigDict(frozen=True)

    menu_item_id: str = Field(..., min_length=1)
    name: str = ""
    options: List[OptionSelection] = Field(default_factory=list)
    quantity: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0)

    @field_validator("options", mode="before")
    @classmethod
    def none_means_no_options(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def unit_price(self) -> float:
        return self.total_price / self.quantity

    @property
    def merge_key(self) -> tuple[str, str]:
        return (self.menu_item_id, serialize_options(self.options))


class Cart(CamelModel):
    """
    The single active cart.

    Build instances with Cart.empty() or Cart.compute() so that subtotal and
    total always satisfy:
        subtotal = sum(item.total_price)
        total = subtotal + delivery_fee + service_charge - discount
    """
    model_config = ConfigDict(frozen=True)

    restaurant_id: Optional[str] = None
    restaurant_name: str = ""
    items: List[CartLineItem] = Field(default_factory=list)
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    service_charge: float = 0.0
    discount: float = 0.0
    total: float = 0.0

    @classmethod
    def empty(cls) -> "Cart":
        """The canonical cleared cart."""
        return cls()

    @classmethod
    def compute(
        cls,
        restaurant_id: Optional[str],
        restaurant_name: str,
        items: List[CartLineItem],
        delivery_fee: float = 0.0,
        service_charge: float = 0.0,
        discount: float = 0.0,
    ) -> "Cart":
        """Build a cart with totals recomputed from the full item list."""
        if not items:
            return cls.empty()

        subtotal = sum(item.total_price for item in items)
        total = subtotal + delivery_fee + service_charge - discount

        return cls(
            restaurant_id=restaurant_id,
            restaurant_name=restaurant_name,
            items=list(items),
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            service_charge=service_charge,
            discount=discount,
            total=total,
        )

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


# =============================================================================
# AUTH
# =============================================================================

class TokenPair(BaseModel):
    """Access/refresh pair returned by login and refresh."""
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)


class UserProfile(BaseModel):
    """Authenticated user as returned by GET /users/profile."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.CUSTOMER
    phone: Optional[str] = None
    avatar: Optional[str] = None
    address: Optional[str] = None
    verify: Optional[int] = None


class RegisterRequest(BaseModel):
    """Body for POST /auth/register."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    confirm_password: str
    phone: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


# =============================================================================
# ORDERS
# =============================================================================

class DeliveryAddress(CamelModel):
    """Selected delivery address."""
    address: str = Field(..., min_length=1)
    lat: float
    lng: float


class OrderItemPayload(CamelModel):
    """Line item as sent to the server: no price, the server prices it."""
    menu_item_id: str
    quantity: int = Field(..., ge=1)
    options: List[OptionSelection] = Field(default_factory=list)


class OrderCreatePayload(CamelModel):
    """Body for POST /orders."""
    restaurant_id: str
    items: List[OrderItemPayload] = Field(..., min_length=1)
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod
    notes: Optional[str] = None
    scheduled_for: Optional[datetime] = None


class OrderCreateResponse(BaseModel):
    """Result of POST /orders."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    order_id: str = Field(..., validation_alias=AliasChoices("order_id", "orderId"))
    total: float


class OrderSummary(CamelModel):
    """Read model for an order fetched from the server."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., validation_alias=AliasChoices("_id", "id", "order_id"))
    restaurant_id: Optional[str] = None
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None
    items: List[dict] = Field(default_factory=list)
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    total: float = 0.0
    is_rated: bool = False


class OrderListPage(BaseModel):
    """
    One page of GET /orders/user.

    The server nests paging info under "pagination"; it is flattened here.
    """
    model_config = ConfigDict(extra="allow")

    orders: List[OrderSummary] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    pages: int = 0

    @model_validator(mode="before")
    @classmethod
    def flatten_pagination(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("pagination"), dict):
            data = {**data["pagination"], **{k: v for k, v in data.items() if k != "pagination"}}
        return data

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total


class OrderRating(CamelModel):
    """Body for POST /orders/:id/rate."""
    rating: int = Field(..., ge=1, le=5)
    review: str = Field("", max_length=1000)
    food_rating: Optional[int] = Field(None, ge=1, le=5)
    delivery_rating: Optional[int] = Field(None, ge=1, le=5)

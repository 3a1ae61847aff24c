"""
Client Error Taxonomy

Every failure the core raises derives from FoodCartError and carries a
user-facing message plus a retryable flag, so screens can decide between an
inline banner with a retry affordance and a blocking alert.

Categories:
    - NetworkError: no response received (includes timeouts)
    - ApiError: non-2xx response with a server-provided message
    - UnauthorizedError: 401, handled by the refresh-retry protocol
    - AuthError: login/refresh failures
    - Cart / Checkout / Order errors

Author: Khalil_Bannouri
Version: 1.0.0
"""

from typing import Any, Optional


GENERIC_NETWORK_MESSAGE = (
    "No response from server. Please check your internet connection."
)


class FoodCartError(Exception):
    """Base class for all client core errors."""

    retryable: bool = False

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message


# =============================================================================
# TRANSPORT
# =============================================================================

class NetworkError(FoodCartError):
    """The request was sent but no response was received."""

    retryable = True

    def __init__(self, message: str = GENERIC_NETWORK_MESSAGE):
        super().__init__(message, user_message=GENERIC_NETWORK_MESSAGE)


class ApiError(FoodCartError):
    """
    The server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the server
        errors: Structured validation errors from the body, if any
        body: Parsed response body (dict) or raw text
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        errors: Optional[dict] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or {}
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    def __repr__(self) -> str:
        return f"<ApiError {self.status_code}: {self.message}>"


class UnauthorizedError(ApiError):
    """401 from the server."""


class InvalidResponseError(ApiError):
    """A 2xx response whose body does not have the expected shape."""

    def __init__(self, message: str, body: Any = None):
        super().__init__(message, 502, body=body)


# =============================================================================
# AUTH
# =============================================================================

class AuthError(FoodCartError):
    """Login, refresh or profile fetch failed."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        user_message = getattr(cause, "user_message", None) or message
        super().__init__(message, user_message=user_message)
        self.cause = cause


# =============================================================================
# CART
# =============================================================================

class CartError(FoodCartError):
    """Invalid cart mutation (bad index, bad quantity)."""


class RestaurantConflictError(CartError):
    """The cart is bound to another restaurant and must be cleared first."""

    def __init__(self, current_restaurant_id: str, requested_restaurant_id: str):
        super().__init__(
            f"Cart holds items from restaurant {current_restaurant_id}, "
            f"cannot add from {requested_restaurant_id}",
            user_message=(
                "Adding items from a different restaurant will clear your "
                "current cart."
            ),
        )
        self.current_restaurant_id = current_restaurant_id
        self.requested_restaurant_id = requested_restaurant_id


# =============================================================================
# CHECKOUT
# =============================================================================

class CheckoutError(FoodCartError):
    """Base class for checkout failures."""


class CheckoutPreconditionError(CheckoutError):
    """Local checks failed before any network call."""

    def __init__(self, failures: list):
        self.failures = list(failures)
        message = "; ".join(f.message for f in self.failures)
        super().__init__(message)


class OrderCreationError(CheckoutError):
    """Order creation was rejected; the cart is untouched."""

    retryable = True

    def __init__(self, cause: Exception):
        server_message = None
        if isinstance(cause, ApiError):
            server_message = cause.message
        elif isinstance(cause, NetworkError):
            server_message = cause.user_message
        super().__init__(
            f"Order creation failed: {cause}",
            user_message=server_message or "Failed to place order. Please try again.",
        )
        self.cause = cause


class OrderOutcomeUnknownError(CheckoutError):
    """
    The server accepted the order request but its answer was unreadable.

    The order may exist, so the cart is kept and a blind retry is discouraged.
    """

    def __init__(self, cause: Exception):
        super().__init__(
            f"Order response could not be read: {cause}",
            user_message=(
                "We could not confirm your order. Please check your order "
                "history before trying again."
            ),
        )
        self.cause = cause


class CheckoutInProgressError(CheckoutError):
    """place_order was called while another submission is running."""

    def __init__(self):
        super().__init__("An order is already being placed")


# =============================================================================
# ORDERS
# =============================================================================

class OrderActionNotAllowed(FoodCartError):
    """The requested action is not legal for the order's current status."""

    def __init__(self, action: str, status: Any):
        super().__init__(
            f"Action '{action}' not allowed for order status {status!r}"
        )
        self.action = action
        self.status = status

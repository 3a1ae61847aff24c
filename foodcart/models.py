"""
Order Status Model and Wire Enumerations

Integer codes shared with the API server:
    - OrderStatus: lifecycle stage of a submitted order (server-owned)
    - PaymentMethod: 0 = cash on delivery, 1 = online gateway
    - PaymentStatus: state of the payment attached to an order
    - UserRole: role carried in the user profile

The client never transitions an order itself. It only reads a status value and
classifies it to decide which actions a screen may offer.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import enum


class OrderStatus(enum.IntEnum):
    """Order status workflow."""
    PENDING = 0
    CONFIRMED = 1
    PREPARING = 2
    READY_FOR_PICKUP = 3
    OUT_FOR_DELIVERY = 4
    DELIVERED = 5
    CANCELLED = 6
    REJECTED = 7


class PaymentMethod(enum.IntEnum):
    """How the customer pays for an order."""
    CASH_ON_DELIVERY = 0
    ONLINE_GATEWAY = 1


class PaymentStatus(enum.IntEnum):
    """Payment state of an order."""
    PENDING = 0
    COMPLETED = 1
    FAILED = 2
    REFUNDED = 3


class UserRole(enum.IntEnum):
    """Account roles."""
    CUSTOMER = 0
    RESTAURANT_OWNER = 1
    DELIVERY_PERSON = 2
    ADMIN = 3


class OrderAction(str, enum.Enum):
    """Order-specific actions a screen can offer."""
    TRACK = "track"
    REORDER = "reorder"
    RATE = "rate"
    CANCEL = "cancel"
    REQUEST_REFUND = "request_refund"


STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.READY_FOR_PICKUP: "Ready for Pickup",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REJECTED: "Rejected",
}


# =============================================================================
# CLASSIFICATION
# =============================================================================

def to_status(value) -> OrderStatus:
    """
    Coerce a raw wire value into an OrderStatus.

    Raises:
        ValueError: If the code is outside 0-7
    """
    if isinstance(value, OrderStatus):
        return value
    return OrderStatus(int(value))


def is_pre_active(status) -> bool:
    """Accepted by the client, not yet confirmed by the restaurant."""
    return to_status(status) == OrderStatus.PENDING


def is_active(status) -> bool:
    """Confirmed <= status < Delivered."""
    return OrderStatus.CONFIRMED <= to_status(status) < OrderStatus.DELIVERED


def is_completed(status) -> bool:
    return to_status(status) == OrderStatus.DELIVERED


def is_cancelled(status) -> bool:
    return to_status(status) in (OrderStatus.CANCELLED, OrderStatus.REJECTED)


def is_terminal(status) -> bool:
    return is_completed(status) or is_cancelled(status)


def status_label(status) -> str:
    return STATUS_LABELS[to_status(status)]


def allowed_actions(status, is_rated: bool = False) -> frozenset[OrderAction]:
    """
    Compute the order actions legal for a status.

    Rules:
        - Pending: cancel
        - Active range: track
        - Delivered: reorder, refund request, and rate while unrated
        - Cancelled/Rejected: nothing

    Args:
        status: OrderStatus or raw integer code
        is_rated: Whether the customer already rated the order

    Returns:
        frozenset of OrderAction
    """
    status = to_status(status)

    if is_pre_active(status):
        return frozenset({OrderAction.CANCEL})
    if is_active(status):
        return frozenset({OrderAction.TRACK})
    if is_completed(status):
        actions = {OrderAction.REORDER, OrderAction.REQUEST_REFUND}
        if not is_rated:
            actions.add(OrderAction.RATE)
        return frozenset(actions)
    return frozenset()


def is_action_allowed(action: OrderAction, status, is_rated: bool = False) -> bool:
    return action in allowed_actions(status, is_rated=is_rated)

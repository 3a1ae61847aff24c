"""Tests for order status classification and action gating"""
import pytest

from foodcart.models import (
    OrderAction,
    OrderStatus,
    allowed_actions,
    is_action_allowed,
    is_active,
    is_cancelled,
    is_completed,
    is_pre_active,
    is_terminal,
    status_label,
    to_status,
)


ACTIVE = [
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.OUT_FOR_DELIVERY,
]


def test_status_codes_match_wire_values():
    assert [s.value for s in OrderStatus] == list(range(8))
    assert OrderStatus.PENDING < OrderStatus.CONFIRMED < OrderStatus.DELIVERED


@pytest.mark.parametrize("status", ACTIVE)
def test_active_range(status):
    assert is_active(status)
    assert not is_pre_active(status)
    assert not is_terminal(status)
    assert allowed_actions(status) == frozenset({OrderAction.TRACK})


def test_pending_is_pre_active_and_cancellable():
    assert is_pre_active(OrderStatus.PENDING)
    assert not is_active(OrderStatus.PENDING)
    assert allowed_actions(OrderStatus.PENDING) == frozenset({OrderAction.CANCEL})


def test_delivered_offers_reorder_and_rate_until_rated():
    assert is_completed(OrderStatus.DELIVERED)
    assert is_terminal(OrderStatus.DELIVERED)

    unrated = allowed_actions(OrderStatus.DELIVERED)
    assert OrderAction.REORDER in unrated
    assert OrderAction.RATE in unrated
    assert OrderAction.TRACK not in unrated

    rated = allowed_actions(OrderStatus.DELIVERED, is_rated=True)
    assert OrderAction.REORDER in rated
    assert OrderAction.RATE not in rated


@pytest.mark.parametrize("status", [OrderStatus.CANCELLED, OrderStatus.REJECTED])
def test_terminal_failure_disables_everything(status):
    assert is_cancelled(status)
    assert is_terminal(status)
    assert not is_completed(status)
    assert allowed_actions(status) == frozenset()


@pytest.mark.parametrize("status", ACTIVE + [OrderStatus.DELIVERED])
def test_cancel_not_offered_after_confirmation(status):
    assert not is_action_allowed(OrderAction.CANCEL, status)


def test_raw_integer_codes_accepted():
    assert is_active(2)
    assert is_cancelled(7)
    assert to_status("5") == OrderStatus.DELIVERED
    assert status_label(4) == "Out for Delivery"


def test_unknown_code_rejected():
    with pytest.raises(ValueError):
        to_status(8)

"""Tests for the cart engine and its persistence"""
import json

import pytest

from foodcart.errors import CartError, OrderActionNotAllowed, RestaurantConflictError
from foodcart.schemas import Cart, CartLineItem, OrderSummary
from foodcart.services.cart import CartEngine, CartPersister, would_replace_restaurant
from foodcart.services.storage import CART_KEY, MemoryKeyValueStore, StorageError


CANONICAL_EMPTY = {
    "restaurant_id": None,
    "restaurant_name": "",
    "items": [],
    "subtotal": 0.0,
    "delivery_fee": 0.0,
    "service_charge": 0.0,
    "discount": 0.0,
    "total": 0.0,
}


def assert_totals(cart: Cart):
    assert cart.subtotal == sum(item.total_price for item in cart.items)
    assert cart.total == cart.subtotal + cart.delivery_fee + cart.service_charge - cart.discount


class _FailingStore(MemoryKeyValueStore):
    async def set_item(self, key, value):
        raise StorageError("disk full")


# =============================================================================
# ADD / MERGE
# =============================================================================

def test_first_add_binds_restaurant(cart_engine, sample_item):
    assert cart_engine.add_item("R1", "Pho 24", sample_item) is True

    cart = cart_engine.cart
    assert cart.restaurant_id == "R1"
    assert cart.restaurant_name == "Pho 24"
    assert len(cart.items) == 1
    assert cart.subtotal == 10.0
    assert_totals(cart)


def test_same_item_and_options_merge(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.update_delivery_fee(2)
    cart_engine.add_item("R1", "Pho 24", dict(sample_item))

    cart = cart_engine.cart
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2
    assert cart.items[0].total_price == 20.0
    assert cart.subtotal == 20.0
    assert cart.total == 22.0


def test_merge_sums_quantities_and_prices(cart_engine, sample_options):
    cart_engine.add_item("R1", "Pho 24", {
        "menuItemId": "B", "quantity": 2, "options": sample_options, "totalPrice": 30.0,
    })
    cart_engine.add_item("R1", "Pho 24", {
        "menuItemId": "B", "quantity": 3, "options": sample_options, "totalPrice": 45.0,
    })

    assert len(cart_engine.cart.items) == 1
    line = cart_engine.cart.items[0]
    assert line.quantity == 5
    assert line.total_price == 75.0


def test_different_options_make_separate_lines(cart_engine, sample_item, sample_options):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.add_item("R1", "Pho 24", {**sample_item, "options": sample_options, "totalPrice": 15.0})

    assert len(cart_engine.cart.items) == 2
    assert cart_engine.cart.subtotal == 25.0


def test_option_key_order_does_not_split_lines(cart_engine):
    a = CartLineItem.model_validate({
        "menuItemId": "A", "quantity": 1, "totalPrice": 12.0,
        "options": [{"title": "Size", "items": [{"name": "L", "price": 2.0}]}],
    })
    b = CartLineItem.model_validate({
        "totalPrice": 12.0, "quantity": 1, "menuItemId": "A",
        "options": [{"items": [{"price": 2.0, "name": "L"}], "title": "Size"}],
    })
    assert a.merge_key == b.merge_key


def test_missing_options_equal_empty_options(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", {**sample_item, "options": None})
    cart_engine.add_item("R1", "Pho 24", {**sample_item, "options": []})

    assert len(cart_engine.cart.items) == 1


def test_other_restaurant_is_refused_without_mutation(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    before = cart_engine.cart

    assert would_replace_restaurant(before, "R2")
    with pytest.raises(RestaurantConflictError) as exc_info:
        cart_engine.add_item("R2", "Com Tam", sample_item)

    assert exc_info.value.current_restaurant_id == "R1"
    assert cart_engine.cart == before


def test_clear_then_add_switches_restaurant(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.clear_cart()
    cart_engine.add_item("R2", "Com Tam", sample_item)

    assert cart_engine.cart.restaurant_id == "R2"
    assert len(cart_engine.cart.items) == 1


def test_no_replacement_needed_for_empty_or_same_restaurant(cart_engine, sample_item):
    assert not would_replace_restaurant(cart_engine.cart, "R1")
    cart_engine.add_item("R1", "Pho 24", sample_item)
    assert not would_replace_restaurant(cart_engine.cart, "R1")


def test_malformed_item_rejected(cart_engine):
    with pytest.raises(CartError):
        cart_engine.add_item("R1", "Pho 24", {"menuItemId": "A", "quantity": 0, "totalPrice": 10})
    assert cart_engine.cart.is_empty


# =============================================================================
# QUANTITY / REMOVAL
# =============================================================================

def test_quantity_update_rescales_from_unit_price(cart_engine):
    cart_engine.add_item("R1", "Pho 24", {"menuItemId": "A", "quantity": 1, "totalPrice": 15.0})
    cart_engine.update_item_quantity(0, 3)

    line = cart_engine.cart.items[0]
    assert line.quantity == 3
    assert line.total_price == 45.0
    assert_totals(cart_engine.cart)


def test_quantity_zero_removes_last_item(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.update_delivery_fee(2)
    cart_engine.update_item_quantity(0, 0)

    assert cart_engine.cart.model_dump() == CANONICAL_EMPTY


def test_negative_quantity_removes_line(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.add_item("R1", "Pho 24", {**sample_item, "menuItemId": "B"})
    cart_engine.update_item_quantity(0, -1)

    assert [item.menu_item_id for item in cart_engine.cart.items] == ["B"]


def test_remove_keeps_other_lines_and_fees(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.add_item("R1", "Pho 24", {**sample_item, "menuItemId": "B", "totalPrice": 7.0})
    cart_engine.update_service_charge(1.5)
    cart_engine.remove_item(0)

    cart = cart_engine.cart
    assert [item.menu_item_id for item in cart.items] == ["B"]
    assert cart.service_charge == 1.5
    assert cart.total == 8.5


def test_removing_last_item_resets_cart(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.apply_discount(3)
    cart_engine.remove_item(0)

    assert cart_engine.cart.model_dump() == CANONICAL_EMPTY


@pytest.mark.parametrize("index", [1, -1, 5])
def test_out_of_range_index_leaves_cart_untouched(cart_engine, sample_item, index):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    before = cart_engine.cart

    with pytest.raises(CartError):
        cart_engine.remove_item(index)
    with pytest.raises(CartError):
        cart_engine.update_item_quantity(index, 2)

    assert cart_engine.cart == before


def test_non_integer_quantity_rejected(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    with pytest.raises(CartError):
        cart_engine.update_item_quantity(0, 1.5)


# =============================================================================
# FEES / DISCOUNT
# =============================================================================

def test_fees_and_discount_recompute_total(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.update_delivery_fee(2)
    cart_engine.update_service_charge(1)
    cart_engine.apply_discount(4)

    cart = cart_engine.cart
    assert cart.total == 9.0
    assert_totals(cart)


def test_discount_larger_than_cart_is_not_clamped(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.apply_discount(25)

    assert cart_engine.cart.total == -15.0


def test_negative_fee_rejected(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    with pytest.raises(CartError):
        cart_engine.update_delivery_fee(-1)
    assert cart_engine.cart.delivery_fee == 0.0


@pytest.mark.parametrize("mutate", [
    lambda engine: engine.update_delivery_fee(float("nan")),
    lambda engine: engine.update_service_charge(float("inf")),
    lambda engine: engine.apply_discount(float("nan")),
    lambda engine: engine.apply_discount(float("-inf")),
])
def test_non_finite_amounts_rejected(cart_engine, sample_item, mutate):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    before = cart_engine.cart

    with pytest.raises(CartError):
        mutate(cart_engine)
    assert cart_engine.cart == before
    assert cart_engine.cart.total == 10.0


def test_fee_on_empty_cart_keeps_canonical_form(cart_engine):
    cart_engine.update_delivery_fee(5)
    assert cart_engine.cart.model_dump() == CANONICAL_EMPTY


def test_single_restaurant_invariant_over_sequence(cart_engine, sample_item):
    steps = [
        lambda: cart_engine.add_item("R1", "A", sample_item),
        lambda: cart_engine.add_item("R1", "A", {**sample_item, "menuItemId": "B"}),
        lambda: cart_engine.remove_item(0),
        lambda: cart_engine.clear_cart(),
        lambda: cart_engine.add_item("R2", "B", sample_item),
        lambda: cart_engine.update_item_quantity(0, 4),
    ]
    for step in steps:
        step()
        cart = cart_engine.cart
        assert cart.is_empty or cart.restaurant_id is not None
        assert_totals(cart)
    assert cart_engine.cart.restaurant_id == "R2"


def test_listeners_see_every_mutation(cart_engine, sample_item):
    seen = []
    unsubscribe = cart_engine.on_change(lambda cart: seen.append(cart.item_count))

    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart_engine.update_item_quantity(0, 3)
    unsubscribe()
    cart_engine.clear_cart()

    assert seen == [1, 3]


# =============================================================================
# REORDER
# =============================================================================

def _delivered_order(**overrides):
    data = {
        "_id": "order-1",
        "restaurantId": "R9",
        "orderStatus": 5,
        "items": [
            {"menuItemId": "A", "name": "Pho", "price": 10, "quantity": 2, "options": [], "totalPrice": 20},
            {"menuItemId": "B", "name": "Tea", "price": 3, "quantity": 1, "options": [], "totalPrice": 3},
        ],
    }
    data.update(overrides)
    return OrderSummary.model_validate(data)


def test_reorder_replaces_cart_with_past_items(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    cart = cart_engine.reorder(_delivered_order(), restaurant_name="Bun Cha")

    assert cart.restaurant_id == "R9"
    assert [item.menu_item_id for item in cart.items] == ["A", "B"]
    assert cart.subtotal == 23.0


def test_reorder_requires_delivered_order(cart_engine, sample_item):
    cart_engine.add_item("R1", "Pho 24", sample_item)
    before = cart_engine.cart

    with pytest.raises(OrderActionNotAllowed):
        cart_engine.reorder(_delivered_order(orderStatus=2))
    assert cart_engine.cart == before


def test_reorder_notifies_and_persists_once(store, sample_item):
    persister = CartPersister(store)
    engine = CartEngine(store, persister)
    engine.add_item("R1", "Pho 24", sample_item)
    seen = []
    engine.on_change(seen.append)
    queued = persister.pending

    cart = engine.reorder(_delivered_order(), restaurant_name="Bun Cha")

    assert seen == [cart]
    assert seen[0].restaurant_id == "R9"
    assert persister.pending == queued + 1


def test_reorder_merges_repeated_lines(cart_engine):
    order = _delivered_order(items=[
        {"menuItemId": "A", "name": "Pho", "price": 10, "quantity": 2, "options": [], "totalPrice": 20},
        {"menuItemId": "A", "name": "Pho", "price": 10, "quantity": 1, "options": [], "totalPrice": 10},
    ])

    cart = cart_engine.reorder(order)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3
    assert cart.total == 30.0
    assert_totals(cart)


# =============================================================================
# PERSISTENCE
# =============================================================================

@pytest.mark.asyncio
async def test_mutations_are_persisted_in_order(store, sample_item):
    engine = CartEngine(store)
    await engine.load()

    engine.add_item("R1", "Pho 24", sample_item)
    engine.update_item_quantity(0, 2)
    engine.update_delivery_fee(2)
    await engine.flush()

    saved = json.loads(store.snapshot()[CART_KEY])
    assert saved["restaurantId"] == "R1"
    assert saved["items"][0]["menuItemId"] == "A"
    assert saved["items"][0]["quantity"] == 2
    assert saved["total"] == 22.0

    await engine.close()


@pytest.mark.asyncio
async def test_clearing_removes_persisted_cart(store, sample_item):
    engine = CartEngine(store)
    engine.add_item("R1", "Pho 24", sample_item)
    await engine.flush()
    assert CART_KEY in store.snapshot()

    engine.clear_cart()
    await engine.flush()
    assert CART_KEY not in store.snapshot()

    await engine.close()


@pytest.mark.asyncio
async def test_load_restores_persisted_cart(sample_item):
    first_store = MemoryKeyValueStore()
    first = CartEngine(first_store)
    first.add_item("R1", "Pho 24", sample_item)
    first.apply_discount(1)
    await first.close()

    second = CartEngine(MemoryKeyValueStore(first_store.snapshot()))
    cart = await second.load()

    assert second.loaded
    assert cart == first.cart
    assert cart.total == 9.0


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps({"items": [{"quantity": "x"}]}),
    json.dumps({"restaurantId": None, "items": [{"menuItemId": "A", "quantity": 1, "totalPrice": 10}]}),
    json.dumps({"items": [{"menuItemId": "A", "quantity": 1, "totalPrice": 10}]}),
])
async def test_invalid_persisted_cart_falls_back_to_empty(raw):
    engine = CartEngine(MemoryKeyValueStore({CART_KEY: raw}))
    cart = await engine.load()

    assert cart.model_dump() == CANONICAL_EMPTY


@pytest.mark.asyncio
async def test_persistence_failure_keeps_memory_state(sample_item):
    engine = CartEngine(_FailingStore())
    engine.add_item("R1", "Pho 24", sample_item)
    await engine.flush()

    assert len(engine.cart.items) == 1
    await engine.close()

"""
Cart Engine

Owns the single active cart: restaurant binding, line items and computed
totals. All mutations are synchronous over in-memory state; each successful
mutation swaps in a new immutable Cart, notifies listeners and schedules a
persistence write. The in-memory cart is always the source of truth.

Persistence is ordered but not awaited by the mutation: CartPersister drains
a queue with a single background task, so writes land in the order the
mutations were applied.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import math
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from foodcart.errors import CartError, OrderActionNotAllowed, RestaurantConflictError
from foodcart.models import OrderAction, is_action_allowed
from foodcart.schemas import Cart, CartLineItem, OrderSummary
from foodcart.services.storage import CART_KEY, BaseKeyValueStore, StorageError

logger = logging.getLogger(__name__)


CartListener = Callable[[Cart], None]


def would_replace_restaurant(cart: Cart, restaurant_id: str) -> bool:
    """
    True when adding from `restaurant_id` would require clearing the cart.

    Callers consult this before add_item and ask the user to confirm.
    """
    return not cart.is_empty and cart.restaurant_id != restaurant_id


def _merge_into(items: list[CartLineItem], item: CartLineItem) -> list[CartLineItem]:
    """Fold `item` into the line with the same merge key, or append it."""
    key = item.merge_key
    for position, existing in enumerate(items):
        if existing.merge_key == key:
            items[position] = existing.model_copy(update={
                "quantity": existing.quantity + item.quantity,
                "total_price": existing.total_price + item.total_price,
            })
            break
    else:
        items.append(item)
    return items


# =============================================================================
# PERSISTENCE
# =============================================================================

class CartPersister:
    """
    Fire-and-forget, ordered writer for the "cart" key.

    Each scheduled write is either the cart JSON or a removal. A single
    worker task drains the queue in FIFO order; failures are logged and do
    not affect in-memory state.
    """

    def __init__(self, store: BaseKeyValueStore, key: str = CART_KEY):
        self._store = store
        self._key = key
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def schedule(self, cart: Optional[Cart]) -> None:
        """Queue a write of `cart`, or a removal when `cart` is None."""
        payload = None if cart is None else cart.model_dump_json(by_alias=True)
        self._queue.put_nowait(payload)
        self._ensure_worker()

    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; flush() starts the worker later.
            return
        self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                if payload is None:
                    await self._store.remove_item(self._key)
                else:
                    await self._store.set_item(self._key, payload)
            except StorageError as e:
                logger.error(f"Error saving cart: {e}")
            finally:
                self._queue.task_done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def flush(self) -> None:
        """Wait until every scheduled write has been attempted."""
        self._ensure_worker()
        await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None


# =============================================================================
# ENGINE
# =============================================================================

class CartEngine:
    """
    Single-restaurant shopping cart.

    Example:
        >>> engine = CartEngine(store)
        >>> await engine.load()
        >>> if would_replace_restaurant(engine.cart, "r2"):
        ...     engine.clear_cart()  # after the user confirmed
        >>> engine.add_item("r2", "Pho 24", {"menuItemId": "m1", "quantity": 1, "totalPrice": 45000})
    """

    def __init__(
        self,
        store: BaseKeyValueStore,
        persister: Optional[CartPersister] = None,
    ):
        self._store = store
        self._persister = persister or CartPersister(store)
        self._cart = Cart.empty()
        self._listeners: list[CartListener] = []
        self._loaded = False

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def loaded(self) -> bool:
        return self._loaded

    def on_change(self, listener: CartListener) -> Callable[[], None]:
        """Register a callback invoked with the new cart after each mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # LOAD / PERSIST
    # =========================================================================

    async def load(self) -> Cart:
        """
        Read the persisted cart at startup.

        Missing, unreadable or invalid data yields the canonical empty cart.
        """
        try:
            raw = await self._store.get_item(CART_KEY)
        except StorageError as e:
            logger.error(f"Error loading cart: {e}")
            raw = None

        cart = Cart.empty()
        if raw:
            try:
                stored = Cart.model_validate_json(raw)
            except ValidationError as e:
                logger.warning(f"Discarding invalid persisted cart: {e.error_count()} errors")
            else:
                if stored.items and not stored.restaurant_id:
                    logger.warning("Discarding persisted cart: items without a restaurant")
                else:
                    cart = Cart.compute(
                        stored.restaurant_id,
                        stored.restaurant_name,
                        stored.items,
                        delivery_fee=stored.delivery_fee,
                        service_charge=stored.service_charge,
                        discount=stored.discount,
                    )

        self._cart = cart
        self._loaded = True
        logger.debug(f"Cart loaded ({len(cart.items)} items)")
        self._emit()
        return cart

    def _commit(self, cart: Cart) -> None:
        self._cart = cart
        self._persister.schedule(None if cart.is_empty else cart)
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._cart)
            except Exception:
                logger.exception("Cart listener failed")

    async def flush(self) -> None:
        """Wait for pending persistence writes."""
        await self._persister.flush()

    async def close(self) -> None:
        await self._persister.close()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _rebuild(self, items: list[CartLineItem], **overrides: float) -> Cart:
        current = self._cart
        return Cart.compute(
            current.restaurant_id,
            current.restaurant_name,
            items,
            delivery_fee=overrides.get("delivery_fee", current.delivery_fee),
            service_charge=overrides.get("service_charge", current.service_charge),
            discount=overrides.get("discount", current.discount),
        )

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise CartError(f"Item index must be an integer, got {index!r}")
        if not 0 <= index < len(self._cart.items):
            raise CartError(
                f"Item index {index} out of range (cart has {len(self._cart.items)} items)"
            )

    @staticmethod
    def _check_amount(name: str, amount: float) -> float:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise CartError(f"{name} must be a number, got {amount!r}")
        if not math.isfinite(amount):
            raise CartError(f"{name} must be a finite number, got {amount!r}")
        if amount < 0:
            raise CartError(f"{name} cannot be negative")
        return float(amount)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(
        self,
        restaurant_id: str,
        restaurant_name: str,
        item: Union[CartLineItem, dict[str, Any]],
    ) -> bool:
        """
        Add a line item, merging with an existing line of the same merge key.

        Raises:
            RestaurantConflictError: Cart is bound to another restaurant
            CartError: The item is malformed

        Returns:
            True once the item is in the cart
        """
        if not restaurant_id:
            raise CartError("restaurant_id is required")
        if would_replace_restaurant(self._cart, restaurant_id):
            raise RestaurantConflictError(self._cart.restaurant_id, restaurant_id)

        if not isinstance(item, CartLineItem):
            try:
                item = CartLineItem.model_validate(item)
            except ValidationError as e:
                raise CartError(f"Invalid cart item: {e}") from e

        items = _merge_into(list(self._cart.items), item)

        current = self._cart
        self._commit(Cart.compute(
            restaurant_id,
            restaurant_name,
            items,
            delivery_fee=current.delivery_fee,
            service_charge=current.service_charge,
            discount=current.discount,
        ))

        logger.debug(f"Added {item.quantity} x {item.menu_item_id} from restaurant {restaurant_id}")
        return True

    def update_item_quantity(self, index: int, quantity: int) -> None:
        """
        Set a line's quantity, rescaling its total from the current unit price.

        A quantity of zero or less removes the line.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise CartError(f"Quantity must be an integer, got {quantity!r}")
        if quantity <= 0:
            self.remove_item(index)
            return

        self._check_index(index)

        items = list(self._cart.items)
        line = items[index]
        items[index] = line.model_copy(update={
            "quantity": quantity,
            "total_price": line.unit_price * quantity,
        })

        self._commit(self._rebuild(items))

    def remove_item(self, index: int) -> None:
        """Drop a line. Removing the last line resets the cart."""
        self._check_index(index)

        items = [item for position, item in enumerate(self._cart.items) if position != index]
        if not items:
            self.clear_cart()
            return

        self._commit(self._rebuild(items))

    def update_delivery_fee(self, fee: float) -> None:
        self._commit(self._rebuild(
            list(self._cart.items),
            delivery_fee=self._check_amount("Delivery fee", fee),
        ))

    def update_service_charge(self, charge: float) -> None:
        self._commit(self._rebuild(
            list(self._cart.items),
            service_charge=self._check_amount("Service charge", charge),
        ))

    def apply_discount(self, amount: float) -> None:
        self._commit(self._rebuild(
            list(self._cart.items),
            discount=self._check_amount("Discount", amount),
        ))

    def clear_cart(self) -> None:
        """Unconditional reset to the canonical empty cart."""
        self._commit(Cart.empty())
        logger.debug("Cart cleared")

    def reorder(self, order: OrderSummary, restaurant_name: str = "") -> Cart:
        """
        Replace the cart with the items of a delivered order.

        Server prices of the past order are carried over as snapshots; they
        are re-validated at order creation like any other cart content.

        Raises:
            OrderActionNotAllowed: The order is not in a reorderable status
            CartError: The order has no usable items
        """
        if not is_action_allowed(OrderAction.REORDER, order.order_status, order.is_rated):
            raise OrderActionNotAllowed(OrderAction.REORDER.value, order.order_status)
        if not order.restaurant_id:
            raise CartError("Order has no restaurant")

        try:
            items = [CartLineItem.model_validate(raw) for raw in order.items]
        except ValidationError as e:
            raise CartError(f"Order items cannot be re-added: {e}") from e
        if not items:
            raise CartError("Order has no items")

        merged: list[CartLineItem] = []
        for item in items:
            _merge_into(merged, item)

        self._commit(Cart.compute(order.restaurant_id, restaurant_name, merged))

        logger.info(f"Reordered {len(items)} lines from order {order.id}")
        return self._cart

"""
Checkout Simulation Script

Runs many customers through login → cart → checkout concurrently against a
running ordering API to exercise the refresh-retry path and checkout
ordering under load.
Run from project root: python scripts/simulate.py --email ... --password ...

Every simulated customer gets its own AppState and in-memory store, so carts
and sessions never leak between them.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from foodcart.core.config import get_settings, setup_logging  # noqa: E402
from foodcart.errors import FoodCartError  # noqa: E402
from foodcart.models import PaymentMethod  # noqa: E402
from foodcart.schemas import DeliveryAddress  # noqa: E402
from foodcart.services.checkout import OrderConfirmation  # noqa: E402
from foodcart.services.storage import MemoryKeyValueStore  # noqa: E402
from foodcart.state import AppState  # noqa: E402

TOTAL_ORDERS = 20

ADDRESSES = [
    DeliveryAddress(address="12 Nguyen Hue, District 1", lat=10.7740, lng=106.7038),
    DeliveryAddress(address="45 Le Loi, District 1", lat=10.7722, lng=106.6990),
    DeliveryAddress(address="88 Vo Van Tan, District 3", lat=10.7769, lng=106.6880),
    DeliveryAddress(address="210 Tran Hung Dao, District 5", lat=10.7545, lng=106.6678),
]
OPTION_SETS = [
    [],
    [{"title": "Size", "items": [{"name": "Large", "price": 10000}]}],
    [{"title": "Extras", "items": [{"name": "Egg", "price": 5000}, {"name": "Pate", "price": 7000}]}],
]


def generate_random_items(menu_item_ids: list[str]) -> list[dict[str, Any]]:
    """Random cart lines with client-side price snapshots."""
    items = []
    for _ in range(random.randint(1, 4)):
        quantity = random.randint(1, 3)
        unit_price = random.choice([35000, 45000, 55000, 65000])
        items.append({
            "menuItemId": random.choice(menu_item_ids),
            "quantity": quantity,
            "options": random.choice(OPTION_SETS),
            "totalPrice": unit_price * quantity,
        })
    return items


async def run_customer(
    order_num: int,
    email: str,
    password: str,
    restaurant_id: str,
    menu_item_ids: list[str],
) -> dict[str, Any]:
    """Place one order with a fresh client and report the outcome."""
    start = time.time()
    method = random.choice(list(PaymentMethod))

    async with AppState(store=MemoryKeyValueStore()) as app:
        try:
            await app.session.login(email, password)
            for item in generate_random_items(menu_item_ids):
                app.cart.add_item(restaurant_id, "Simulated Restaurant", item)
            app.cart.update_delivery_fee(15000)

            result = await app.checkout.place_order(random.choice(ADDRESSES), method)
        except FoodCartError as e:
            print(f"   ❌ Order #{order_num}: {e.user_message}")
            return {"order_num": order_num, "success": False, "error": e.user_message,
                    "time": round(time.time() - start, 3)}

    elapsed = round(time.time() - start, 3)
    if isinstance(result, OrderConfirmation):
        print(f"   ✅ Order #{order_num}: {result.order_id} (cash, {result.total:,.0f})")
    elif result.can_redirect:
        print(f"   ✅ Order #{order_num}: {result.order_id} (online, redirect ready)")
    else:
        print(f"   ⚠️ Order #{order_num}: {result.order_id} created, payment init failed: {result.error}")

    return {
        "order_num": order_num,
        "success": True,
        "order_id": result.order_id,
        "total": result.total,
        "method": method.name,
        "time": elapsed,
    }


async def run_simulation(
    email: str,
    password: str,
    restaurant_id: str,
    menu_item_ids: list[str],
    num_orders: int = TOTAL_ORDERS,
) -> dict[str, Any]:
    """
    Fire num_orders concurrent checkouts.

    Args:
        email: Customer account used by every simulated client
        password: Password for that account
        restaurant_id: Restaurant all carts are bound to
        menu_item_ids: Menu items to pick from
        num_orders: Number of orders to simulate
    """
    settings = get_settings()

    print("=" * 70)
    print("🔥 CHECKOUT SIMULATION - CONCURRENT CUSTOMERS")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {settings.api_base_url}")
    print(f"🔧 Mode: {settings.env_mode.value}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70 + "\n")

    start_time = time.time()
    results = await asyncio.gather(*[
        run_customer(i + 1, email, password, restaurant_id, menu_item_ids)
        for i in range(num_orders)
    ])
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print("\n📈 Performance Metrics:")
        print(f"   Average Checkout: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Server Total: {sum(r['total'] for r in successful):,.0f}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Checkout Simulation Script")
    parser.add_argument("--email", required=True, help="Customer account email")
    parser.add_argument("--password", required=True, help="Customer account password")
    parser.add_argument("--restaurant", required=True, help="Restaurant id")
    parser.add_argument("--menu-item", action="append", required=True, dest="menu_items",
                        help="Menu item id (repeatable)")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(run_simulation(
        args.email,
        args.password,
        args.restaurant,
        args.menu_items,
        num_orders=args.orders,
    ))

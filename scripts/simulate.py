"""
Duplicate Notification Simulation Script

Checks out a batch of carts, then fires the same payment notification
several times concurrently for each one, the way a gateway retrying a
slow webhook would. Every transaction must end up with exactly one
payment email logged.

Run from project root against a running server (ENV_MODE=development):
    python scripts/simulate.py --orders 20 --duplicates 5

Author: Khalil_Bannouri
Version: 4.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any, Optional

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.services.payment.midtrans import notification_signature

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 20
DUPLICATES = 5

# Sample data for random carts
FIRST_NAMES = ["Budi", "Siti", "Agus", "Dewi", "Rina", "Andi", "Putri", "Eko", "Wati", "Joko"]
LAST_NAMES = ["Santoso", "Wijaya", "Saputra", "Lestari", "Hidayat", "Pratama", "Kusuma"]
MENU_ITEMS = [
    {"product_id": "65b2c0f1e4a9d3b7c8e1f2a1", "product_name": "Nasi Goreng", "price": 25000},
    {"product_id": "65b2c0f1e4a9d3b7c8e1f2a2", "product_name": "Mie Ayam", "price": 20000},
    {"product_id": "65b2c0f1e4a9d3b7c8e1f2a3", "product_name": "Sate Ayam", "price": 30000},
    {"product_id": "65b2c0f1e4a9d3b7c8e1f2a4", "product_name": "Es Teh Manis", "price": 8000},
    {"product_id": "65b2c0f1e4a9d3b7c8e1f2a5", "product_name": "Es Jeruk", "price": 10000},
]
FINAL_STATUSES = ["settlement", "capture", "expire", "cancel", "deny"]


def generate_checkout_payload() -> dict[str, Any]:
    """Generate a random cart checkout."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    items = []
    for menu_item in random.sample(MENU_ITEMS, k=random.randint(1, 3)):
        item = menu_item.copy()
        item["qty"] = random.randint(1, 3)
        items.append(item)

    return {
        "table_code": str(random.randint(1, 30)),
        "customer_name": f"{first} {last}",
        "customer_email": f"{first.lower()}.{last.lower()}@example.com",
        "items": items,
    }


def generate_notification(
    order_reference: str,
    gross_amount: int,
    transaction_status: str,
    server_key: Optional[str] = None,
) -> dict[str, Any]:
    """Midtrans-style HTTP notification body."""
    status_code = "200" if transaction_status in ("settlement", "capture") else "202"
    amount = f"{gross_amount}.00"
    notification = {
        "transaction_time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "transaction_status": transaction_status,
        "transaction_id": f"mock-{random.randint(100000, 999999)}",
        "status_code": status_code,
        "payment_type": "qris",
        "order_id": order_reference,
        "gross_amount": amount,
        "fraud_status": "accept",
    }
    if server_key:
        notification["signature_key"] = notification_signature(
            order_reference, status_code, amount, server_key
        )
    return notification


async def checkout(client: httpx.AsyncClient) -> Optional[dict[str, Any]]:
    response = await client.post(
        f"{API_BASE_URL}/api/transactions",
        json=generate_checkout_payload(),
        timeout=30.0,
    )
    if response.status_code != 201:
        print(f"   ⚠️ Checkout failed: {response.text[:100]}")
        return None
    return response.json()["data"]["transaction"]


async def deliver_duplicates(
    client: httpx.AsyncClient,
    transaction: dict[str, Any],
    duplicates: int,
    server_key: Optional[str],
) -> dict[str, Any]:
    """Fire the same notification `duplicates` times at once."""
    status = random.choice(FINAL_STATUSES)
    body = generate_notification(
        transaction["order_reference"], transaction["total_amount"], status, server_key
    )

    start_time = time.time()
    responses = await asyncio.gather(*[
        client.post(f"{API_BASE_URL}/api/payment-notification", json=body, timeout=30.0)
        for _ in range(duplicates)
    ], return_exceptions=True)
    elapsed = round(time.time() - start_time, 3)

    ok = [r for r in responses if isinstance(r, httpx.Response) and r.status_code == 200]
    return {
        "transaction_id": transaction["id"],
        "gateway_status": status,
        "accepted": len(ok),
        "time": elapsed,
    }


async def count_emails(client: httpx.AsyncClient, transaction_id: str) -> int:
    response = await client.get(f"{API_BASE_URL}/api/transactions/{transaction_id}/email-logs")
    return len(response.json().get("data") or [])


async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    duplicates: int = DUPLICATES,
    server_key: Optional[str] = None,
) -> dict[str, Any]:
    """
    Run the duplicate-delivery simulation.

    Args:
        num_orders: Number of carts to check out
        duplicates: Concurrent copies of each notification
        server_key: Midtrans server key, when the server verifies signatures
    """
    print("=" * 70)
    print("🔥 DUPLICATE NOTIFICATION SIMULATION")
    print("=" * 70)
    print(f"📋 Orders: {num_orders}  ·  Copies per notification: {duplicates}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🛒 Checking out carts...")
        transactions = await asyncio.gather(*[checkout(client) for _ in range(num_orders)])
        transactions = [t for t in transactions if t]
        print(f"   ✅ {len(transactions)}/{num_orders} transactions created")

        print("\n🚀 Delivering duplicate notifications...")
        results = await asyncio.gather(*[
            deliver_duplicates(client, t, duplicates, server_key) for t in transactions
        ])

        # Background email tasks finish shortly after the responses
        await asyncio.sleep(1.0)

        for result in results:
            result["emails"] = await count_emails(client, result["transaction_id"])

    total_time = round(time.time() - start_time, 2)
    duplicated = [r for r in results if r["emails"] > 1]
    missing = [r for r in results if r["emails"] == 0]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Exactly one email: {len(results) - len(duplicated) - len(missing)}/{len(results)}")
    print(f"❌ Duplicate emails: {len(duplicated)}")
    print(f"⚠️  No email (send failed, claim released): {len(missing)}")
    print(f"⏱️  Total Time: {total_time}s")

    for r in duplicated[:5]:
        print(f"   {r['transaction_id']} [{r['gateway_status']}]: {r['emails']} emails")

    print("\n" + "=" * 70)

    return {
        "total": len(results),
        "duplicated": len(duplicated),
        "missing": len(missing),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Duplicate Notification Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of carts")
    parser.add_argument("--duplicates", type=int, default=DUPLICATES, help="Copies per notification")
    parser.add_argument("--server-key", default=os.getenv("MIDTRANS_SERVER_KEY"), help="Sign notifications with this key")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.orders, args.duplicates, args.server_key))
    sys.exit(1 if summary["duplicated"] else 0)

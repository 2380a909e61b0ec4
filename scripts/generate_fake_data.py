"""Generate a fake product catalog and order history for development.

Writes ``products.csv``, ``orders.csv`` and ``customers.csv`` in the layout
read by :func:`crmrec.recommender.utils.load_dataset`.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_orders
        orders = generate_fake_orders(products, num_users=100)
"""

import argparse
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_PRODUCTS = 60
DEFAULT_NUM_ORDERS = 400
DEFAULT_DAYS_BACK = 365
DEFAULT_SEED = 42
SECONDS_PER_DAY = 86400
MAX_ITEMS_PER_ORDER = 4

CATEGORIES = [
    "Proteína",
    "Creatina",
    "Pre-Entreno",
    "Aminoácidos",
    "Vitaminas",
    "Snacks",
    "Quemadores",
    "Ganadores",
]
BRANDS = ["Optimum", "MuscleTech", "Dymatize", "BSN", "Universal", "Cellucor"]
# Weighted towards orders that reached the customer
STATUSES = ["delivered"] * 6 + ["shipped", "processing", "pending", "cancelled"]


def generate_fake_products(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """Generate a synthetic catalog.

    Returns:
        DataFrame with id, name, brand, price, categories, stock, created_at.
    """
    if num_products <= 0:
        raise ValueError("num_products must be positive")

    now = now or datetime.now(timezone.utc)
    rows = []
    for i in range(1, num_products + 1):
        categories = random.sample(CATEGORIES, random.randint(1, 2))
        rows.append({
            "id": f"P{i:04d}",
            "name": f"{categories[0]} {i}",
            "brand": random.choice(BRANDS),
            "price": round(random.uniform(20, 2500), 2),
            "categories": "|".join(categories),
            "stock": random.choice([0] + [random.randint(1, 200)] * 5),
            "created_at": now - timedelta(days=random.randint(0, DEFAULT_DAYS_BACK)),
        })
    return pd.DataFrame(rows)


def generate_fake_orders(
    products: pd.DataFrame,
    num_users: int = DEFAULT_NUM_USERS,
    num_orders: int = DEFAULT_NUM_ORDERS,
    days_back: int = DEFAULT_DAYS_BACK,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """Generate order lines, one row per product in an order.

    Raises:
        ValueError: If any numeric parameter is non-positive.
    """
    if num_users <= 0 or num_orders <= 0 or days_back <= 0:
        raise ValueError("num_users, num_orders and days_back must be positive")

    now = now or datetime.now(timezone.utc)
    prices = dict(zip(products["id"], products["price"]))
    product_ids = list(prices)

    rows = []
    for n in range(1, num_orders + 1):
        user_id = f"U{random.randint(1, num_users):04d}"
        created_at = now - timedelta(
            days=random.randrange(days_back), seconds=random.randrange(SECONDS_PER_DAY)
        )
        status = random.choice(STATUSES)
        basket = random.sample(product_ids, random.randint(1, MAX_ITEMS_PER_ORDER))
        lines = [(pid, random.randint(1, 3)) for pid in basket]
        total = round(sum(prices[pid] * qty for pid, qty in lines), 2)

        for pid, qty in lines:
            rows.append({
                "order_id": f"O{n:05d}",
                "order_number": f"ORD-{n:05d}",
                "user_id": user_id,
                "status": status,
                "total": total,
                "created_at": created_at,
                "product_id": pid,
                "quantity": qty,
                "price": prices[pid],
            })

    df = pd.DataFrame(rows)
    return df.sort_values(["created_at", "order_id"]).reset_index(drop=True)


def generate_fake_customers(orders: pd.DataFrame) -> pd.DataFrame:
    """One customer per user that placed an order."""
    users = sorted(orders["user_id"].unique())
    return pd.DataFrame(
        {
            "id": [f"C{u[1:]}" for u in users],
            "user_id": users,
            "name": [f"Customer {u[1:]}" for u in users],
        }
    )


def generate_dataset(
    output_dir: str,
    num_users: int = DEFAULT_NUM_USERS,
    num_products: int = DEFAULT_NUM_PRODUCTS,
    num_orders: int = DEFAULT_NUM_ORDERS,
    seed: int = DEFAULT_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Generate and save products, orders and customers under ``output_dir``."""
    random.seed(seed)
    products = generate_fake_products(num_products)
    orders = generate_fake_orders(products, num_users=num_users, num_orders=num_orders)
    customers = generate_fake_customers(orders)

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    products.to_csv(out / "products.csv", index=False)
    orders.to_csv(out / "orders.csv", index=False)
    customers.to_csv(out / "customers.csv", index=False)

    return products, orders, customers


def main() -> None:
    """Generate the default dataset and print a summary."""
    parser = argparse.ArgumentParser(description="Generate a fake CRMRec dataset")
    parser.add_argument("--output-dir", default=str(Path(__file__).parent.parent / "data"))
    parser.add_argument("--num-users", type=int, default=DEFAULT_NUM_USERS)
    parser.add_argument("--num-products", type=int, default=DEFAULT_NUM_PRODUCTS)
    parser.add_argument("--num-orders", type=int, default=DEFAULT_NUM_ORDERS)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    args = parser.parse_args()

    print(f"Generating {args.num_orders} fake orders...")
    print(f"Users: {args.num_users}, Products: {args.num_products}")

    try:
        products, orders, customers = generate_dataset(
            args.output_dir,
            num_users=args.num_users,
            num_products=args.num_products,
            num_orders=args.num_orders,
            seed=args.seed,
        )
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    print(f"\nData generated successfully!")
    print(f"Saved to: {args.output_dir}")
    print(f"\nData summary:")
    print(f"  Products:    {len(products)}")
    print(f"  Orders:      {orders['order_id'].nunique()} ({len(orders)} lines)")
    print(f"  Customers:   {len(customers)}")
    print(f"  Date range:  {orders['created_at'].min()} to {orders['created_at'].max()}")


if __name__ == "__main__":
    main()

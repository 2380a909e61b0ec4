"""Utility functions for loading order and catalog data.

Reads the CSV exports the CLI and the API run on and turns them into
in-memory stores.

Expected files inside a data directory:

* ``products.csv``: id, name, brand, price, categories, stock, created_at
  (``categories`` is ``|``-separated)
* ``orders.csv``: one row per order line with order_id, user_id, status,
  total, created_at, product_id, quantity, price
* ``customers.csv`` (optional): id, user_id, name
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pandas as pd

from crmrec.recommender.models import Customer, Order, OrderItem, Product
from crmrec.recommender.stores import (
    InMemoryCustomerStore,
    InMemoryOrderStore,
    InMemoryProductStore,
)

# Configure module logger
logger = logging.getLogger(__name__)

PRODUCTS_FILENAME = "products.csv"
ORDERS_FILENAME = "orders.csv"
CUSTOMERS_FILENAME = "customers.csv"
CATEGORY_SEPARATOR = "|"

PRODUCT_COLUMNS = {"id", "name", "price", "stock"}
ORDER_COLUMNS = {"order_id", "user_id", "status", "total", "created_at", "product_id", "quantity"}
CUSTOMER_COLUMNS = {"id", "user_id"}


@dataclass
class Dataset:
    """In-memory stores loaded from a data directory."""

    orders: InMemoryOrderStore
    products: InMemoryProductStore
    customers: InMemoryCustomerStore


def _read_csv(csv_path: str, required_columns: set) -> pd.DataFrame:
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading CSV from {csv_path}")
    df = pd.read_csv(csv_path, dtype={"id": str, "user_id": str, "order_id": str, "product_id": str})

    if not required_columns.issubset(df.columns):
        missing = required_columns - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")

    return df


def _split_categories(value) -> List[str]:
    if pd.isna(value) or value == "":
        return []
    return [c.strip() for c in str(value).split(CATEGORY_SEPARATOR) if c.strip()]


def _optional_str(value) -> Optional[str]:
    return None if pd.isna(value) else str(value)


def load_products_csv(csv_path: str) -> List[Product]:
    """Load catalog entries from CSV.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If required columns are missing.
    """
    df = _read_csv(csv_path, PRODUCT_COLUMNS)

    products = []
    for row in df.to_dict(orient="records"):
        fields = {
            "id": str(row["id"]),
            "name": str(row["name"]),
            "brand": "" if pd.isna(row.get("brand")) else str(row.get("brand")),
            "price": float(row["price"]),
            "categories": _split_categories(row.get("categories")),
            "stock": int(row["stock"]),
        }
        if "created_at" in row and not pd.isna(row["created_at"]):
            fields["created_at"] = pd.to_datetime(row["created_at"], utc=True).to_pydatetime()
        products.append(Product(**fields))

    logger.info(f"Loaded {len(products)} products")
    return products


def load_orders_csv(csv_path: str) -> List[Order]:
    """Load orders from a CSV with one row per order line.

    Lines are grouped by ``order_id``; the order-level columns are taken from
    the first line of each group.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If required columns are missing.
    """
    df = _read_csv(csv_path, ORDER_COLUMNS)
    if df.empty:
        logger.warning(f"No order lines in {csv_path}")
        return []

    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    if "price" not in df.columns:
        df["price"] = 0.0

    orders = []
    for order_id, lines in df.groupby("order_id", sort=False):
        first = lines.iloc[0]
        items = [
            OrderItem(
                product_id=str(line.product_id),
                quantity=int(line.quantity),
                price=float(line.price),
            )
            for line in lines.itertuples(index=False)
        ]
        orders.append(
            Order(
                id=str(order_id),
                user_id=str(first["user_id"]),
                items=items,
                status=str(first["status"]),
                total=float(first["total"]),
                created_at=first["created_at"].to_pydatetime(),
                order_number=_optional_str(first.get("order_number")),
            )
        )

    logger.info(f"Loaded {len(orders)} orders from {len(df)} order lines")
    return orders


def load_customers_csv(csv_path: str) -> List[Customer]:
    df = _read_csv(csv_path, CUSTOMER_COLUMNS)
    customers = [
        Customer(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=_optional_str(row.get("name")),
            customer_code=_optional_str(row.get("customer_code")),
        )
        for row in df.to_dict(orient="records")
    ]
    logger.info(f"Loaded {len(customers)} customers")
    return customers


def load_dataset(data_dir: str) -> Dataset:
    """Load products, orders and (if present) customers from ``data_dir``.

    Args:
        data_dir: Directory containing the CSV files.

    Returns:
        Dataset with populated in-memory stores.

    Raises:
        FileNotFoundError: If the directory, products or orders are missing.
        ValueError: If a CSV lacks required columns.
    """
    data_path = Path(data_dir)
    if not data_path.exists():
        raise FileNotFoundError(f"Data directory does not exist: {data_dir}")

    products = load_products_csv(str(data_path / PRODUCTS_FILENAME))
    orders = load_orders_csv(str(data_path / ORDERS_FILENAME))

    customers: List[Customer] = []
    customers_file = data_path / CUSTOMERS_FILENAME
    if customers_file.exists():
        customers = load_customers_csv(str(customers_file))
    else:
        logger.info(f"No {CUSTOMERS_FILENAME} in {data_dir}, starting without customers")

    return Dataset(
        orders=InMemoryOrderStore(orders),
        products=InMemoryProductStore(products),
        customers=InMemoryCustomerStore(customers),
    )


def check_dataset_exists(data_dir: str) -> bool:
    """Check if the required CSV files exist."""
    data_path = Path(data_dir)
    return (data_path / PRODUCTS_FILENAME).exists() and (data_path / ORDERS_FILENAME).exists()

"""Shared fixtures: a small supplement catalog and order history.

Active orders and their distinct products:

* O1 (U1, delivered): P1 x2, P2
* O2 (U2, delivered): P1, P2, P3
* O3 (U3, shipped):   P2, P3 x2
* O4 (U3, cancelled): P1 x5, P4 x5  (ignored everywhere)
* O5 (U4, pending):   P4 x4

Co-purchase counts: P1-P2 = 2, P2-P3 = 2, P1-P3 = 1. P4 has no partners.
Quantities sold: P4 = 4, P1 = P2 = P3 = 3.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from crmrec.api.dependencies import Services, build_services
from crmrec.recommender.models import Customer, Order, OrderItem, OrderStatus, Product, Segment
from crmrec.recommender.stores import (
    InMemoryCustomerStore,
    InMemoryOrderStore,
    InMemoryProductStore,
)
from crmrec.recommender.utils import Dataset

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_order(order_id, user_id, lines, status=OrderStatus.DELIVERED, days_ago=1, total=None):
    """Build an order from ``(product_id, quantity)`` pairs."""
    items = [OrderItem(product_id=pid, quantity=qty, price=10.0) for pid, qty in lines]
    return Order(
        id=order_id,
        user_id=user_id,
        items=items,
        status=status,
        total=total if total is not None else sum(i.price * i.quantity for i in items),
        created_at=NOW - timedelta(days=days_ago),
        order_number=f"ORD-{order_id}",
    )


def sample_products() -> List[Product]:
    def product(pid, name, category, brand, price, stock, day):
        return Product(
            id=pid,
            name=name,
            brand=brand,
            price=price,
            categories=[category],
            stock=stock,
            created_at=datetime(2024, 1, day, tzinfo=timezone.utc),
        )

    return [
        product("P1", "Whey Gold", "Proteína", "Optimum", 100.0, 10, 1),
        product("P2", "Creatine HCL", "Creatina", "MuscleTech", 50.0, 10, 2),
        product("P3", "BCAA 2:1:1", "Aminoácidos", "BSN", 40.0, 5, 3),
        product("P4", "Protein Bar", "Snacks", "Optimum", 5.0, 100, 4),
        product("P5", "C4 Ultimate", "Pre-Entreno", "Cellucor", 1800.0, 3, 5),
        product("P6", "Multivitamin", "Vitaminas", "Universal", 30.0, 0, 6),
        product("P7", "ISO 100", "Proteína", "Dymatize", 2000.0, 2, 7),
    ]


def sample_orders() -> List[Order]:
    return [
        make_order("O1", "U1", [("P1", 2), ("P2", 1)], days_ago=10, total=250.0),
        make_order("O2", "U2", [("P1", 1), ("P2", 1), ("P3", 1)], days_ago=5, total=190.0),
        make_order("O3", "U3", [("P2", 1), ("P3", 2)], OrderStatus.SHIPPED, days_ago=3, total=130.0),
        make_order("O4", "U3", [("P1", 5), ("P4", 5)], OrderStatus.CANCELLED, days_ago=2, total=525.0),
        make_order("O5", "U4", [("P4", 4)], OrderStatus.PENDING, days_ago=1, total=20.0),
    ]


@pytest.fixture
def products() -> List[Product]:
    return sample_products()


@pytest.fixture
def orders() -> List[Order]:
    return sample_orders()


@pytest.fixture
def order_store(orders) -> InMemoryOrderStore:
    return InMemoryOrderStore(orders)


@pytest.fixture
def product_store(products) -> InMemoryProductStore:
    return InMemoryProductStore(products)


@pytest.fixture
def customer_store() -> InMemoryCustomerStore:
    return InMemoryCustomerStore(
        [
            Customer(id="C1", user_id="U1", name="Ana", customer_code="CUS-20240101-AAAAA"),
            Customer(id="C2", user_id="U2", name="Luis", customer_code="CUS-20240101-BBBBB"),
            Customer(id="C5", user_id="U5", name="Sin Pedidos", segment=Segment.NUEVO),
        ]
    )


@pytest.fixture
def dataset(order_store, product_store, customer_store) -> Dataset:
    return Dataset(orders=order_store, products=product_store, customers=customer_store)


@pytest.fixture
def services(dataset) -> Services:
    built = build_services(dataset)
    built.sync.clock = lambda: NOW
    built.hybrid.clock = lambda: NOW
    return built


@pytest.fixture
def engine(services):
    return services.engine

"""Store interfaces consumed by the recommendation engine.

The engine only reads orders and products and reads/writes customers. The
abstract classes describe the calls it makes; the in-memory implementations
back the tests, the CLI and the bundled API.
"""

import abc
import logging
from typing import Dict, Iterable, List, Optional

from crmrec.recommender.models import Customer, Order, OrderStatus, Product

# Configure module logger
logger = logging.getLogger(__name__)


class OrderStore(abc.ABC):
    """Read access to purchase records."""

    @abc.abstractmethod
    async def find_orders_by_user(
        self, user_id: str, statuses: Iterable[OrderStatus]
    ) -> List[Order]:
        """Orders of ``user_id`` whose status is in ``statuses``, newest first."""

    @abc.abstractmethod
    async def find_orders_by_status(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        """All orders whose status is in ``statuses``."""


class ProductStore(abc.ABC):
    """Read access to the catalog."""

    @abc.abstractmethod
    async def find_by_id(self, product_id: str) -> Optional[Product]:
        ...

    @abc.abstractmethod
    async def find_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        """Existing products among ``product_ids``; unknown ids are skipped."""

    @abc.abstractmethod
    async def find_by_category(self, category: str, in_stock: bool = True) -> List[Product]:
        """Products labeled with ``category``, newest first."""

    @abc.abstractmethod
    async def find_premium(self, min_price: float, in_stock: bool = True) -> List[Product]:
        """Products priced at ``min_price`` or above, most expensive first."""

    @abc.abstractmethod
    async def count(self) -> int:
        ...


class CustomerStore(abc.ABC):
    """Read/write access to CRM customer records."""

    @abc.abstractmethod
    async def find_by_user(self, user_id: str) -> Optional[Customer]:
        ...

    @abc.abstractmethod
    async def find_by_id(self, customer_id: str) -> Optional[Customer]:
        ...

    @abc.abstractmethod
    async def save(self, customer: Customer) -> Customer:
        ...

    @abc.abstractmethod
    async def find_all(self) -> List[Customer]:
        ...


class InMemoryOrderStore(OrderStore):
    def __init__(self, orders: Optional[Iterable[Order]] = None):
        self._orders: Dict[str, Order] = {}
        for order in orders or []:
            self.add(order)

    def add(self, order: Order) -> None:
        self._orders[order.id] = order

    def remove(self, order_id: str) -> None:
        self._orders.pop(order_id, None)

    def __len__(self) -> int:
        return len(self._orders)

    async def find_orders_by_user(
        self, user_id: str, statuses: Iterable[OrderStatus]
    ) -> List[Order]:
        wanted = set(statuses)
        orders = [
            order
            for order in self._orders.values()
            if order.user_id == user_id and order.status in wanted
        ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def find_orders_by_status(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        wanted = set(statuses)
        return [order for order in self._orders.values() if order.status in wanted]


class InMemoryProductStore(ProductStore):
    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._products: Dict[str, Product] = {}
        for product in products or []:
            self.add(product)

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    def remove(self, product_id: str) -> None:
        """Delete a product; past orders may keep referencing it."""
        self._products.pop(product_id, None)

    async def find_by_id(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    async def find_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        return [self._products[pid] for pid in product_ids if pid in self._products]

    async def find_by_category(self, category: str, in_stock: bool = True) -> List[Product]:
        matches = [
            product
            for product in self._products.values()
            if category in product.categories and (product.in_stock or not in_stock)
        ]
        return sorted(matches, key=lambda p: (p.created_at, p.id), reverse=True)

    async def find_premium(self, min_price: float, in_stock: bool = True) -> List[Product]:
        matches = [
            product
            for product in self._products.values()
            if product.price >= min_price and (product.in_stock or not in_stock)
        ]
        return sorted(matches, key=lambda p: (-p.price, p.id))

    async def count(self) -> int:
        return len(self._products)


class InMemoryCustomerStore(CustomerStore):
    def __init__(self, customers: Optional[Iterable[Customer]] = None):
        self._customers: Dict[str, Customer] = {}
        for customer in customers or []:
            self._customers[customer.id] = customer

    async def find_by_user(self, user_id: str) -> Optional[Customer]:
        for customer in self._customers.values():
            if customer.user_id == user_id:
                return customer
        return None

    async def find_by_id(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    async def save(self, customer: Customer) -> Customer:
        self._customers[customer.id] = customer
        logger.debug("Saved customer", extra={"customer_id": customer.id})
        return customer

    async def find_all(self) -> List[Customer]:
        return list(self._customers.values())

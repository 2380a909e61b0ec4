"""Customer update pipeline.

Keeps CRM customer records in step with the order history: creates a record
the first time a user orders, recomputes metrics and derived labels after
every order event, and resynchronizes all customers in batch.

No locking is done here. Two concurrent refreshes for the same customer both
recompute from the order store and the last save wins; the derived labels are
always consistent with whichever metrics snapshot is stored.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from crmrec.recommender.exceptions import CustomerNotFoundError
from crmrec.recommender.models import ACTIVE_STATUSES, Customer, Order, utcnow
from crmrec.recommender.segmentation import apply_metrics, compute_metrics, derive_preferences
from crmrec.recommender.stores import CustomerStore, OrderStore, ProductStore

# Configure module logger
logger = logging.getLogger(__name__)

INTERACTION_PURCHASE = "Compra"


def generate_customer_code(now: Optional[datetime] = None) -> str:
    """Customer code of the form ``CUS-YYYYMMDD-XXXXX``."""
    now = now or utcnow()
    return f"CUS-{now:%Y%m%d}-{uuid.uuid4().hex[:5].upper()}"


@dataclass
class SyncReport:
    """Outcome of a batch resynchronization."""

    total: int = 0
    success: int = 0
    errors: int = 0
    details: List[Dict] = field(default_factory=list)


@dataclass
class ProvisionReport:
    """Outcome of creating customer records for users that lack one."""

    total: int = 0
    created: int = 0
    existing: int = 0
    errors: int = 0
    details: List[Dict] = field(default_factory=list)


class CustomerSyncService:
    """Recomputes customer metrics from the order store."""

    def __init__(
        self,
        order_store: OrderStore,
        product_store: ProductStore,
        customer_store: CustomerStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.orders = order_store
        self.products = product_store
        self.customers = customer_store
        self.clock = clock

    async def create_customer_for_user(self, user_id: str, name: Optional[str] = None) -> Customer:
        """Return the user's customer record, creating it if missing.

        Args:
            user_id: Owner of the record.
            name: Display name stored on a new record.

        Returns:
            The existing customer, or a new Nuevo customer with a fresh
            ``CUS-YYYYMMDD-XXXXX`` code.
        """
        existing = await self.customers.find_by_user(user_id)
        if existing is not None:
            return existing

        customer = Customer(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            customer_code=generate_customer_code(self.clock()),
        )
        await self.customers.save(customer)
        logger.info(
            "Created customer",
            extra={"customer_id": customer.id, "customer_code": customer.customer_code, "user_id": user_id},
        )
        return customer

    async def refresh_customer(self, customer: Customer) -> Customer:
        """Recompute metrics and every derived label, then save."""
        orders = await self.orders.find_orders_by_user(customer.user_id, ACTIVE_STATUSES)
        metrics = compute_metrics(orders, now=self.clock())
        updated = apply_metrics(customer, metrics)
        await self.customers.save(updated)

        logger.debug(
            "Refreshed customer metrics",
            extra={
                "customer_id": updated.id,
                "total_orders": metrics.total_orders,
                "segment": updated.segment.value,
                "loyalty_level": updated.loyalty_level.value if updated.loyalty_level else None,
            },
        )
        return updated

    async def sync_after_order(self, user_id: str, order: Optional[Order] = None) -> Customer:
        """Bring the user's customer record up to date after an order event.

        Creates the customer on the user's first order and logs the purchase
        in the interaction history.
        """
        customer = await self.customers.find_by_user(user_id)
        if customer is None:
            logger.info(f"Creating customer for user {user_id} on first order")
            customer = await self.create_customer_for_user(user_id)

        customer = await self.refresh_customer(customer)

        if order is not None:
            label = order.order_number or order.id
            customer = customer.add_interaction(
                INTERACTION_PURCHASE,
                f"Order {label} - ${order.total:.2f}",
                metadata={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "total": order.total,
                    "items": len(order.items),
                },
                now=self.clock(),
            )
            await self.customers.save(customer)

        logger.info(
            "Customer synchronized",
            extra={"customer_id": customer.id, "user_id": user_id, "segment": customer.segment.value},
        )
        return customer

    async def update_customer_metrics(self, customer_id: str) -> Customer:
        """Recompute one customer by id.

        Raises:
            CustomerNotFoundError: If the customer does not exist.
        """
        customer = await self.customers.find_by_id(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return await self.refresh_customer(customer)

    async def update_preferences(self, user_id: str) -> Optional[Customer]:
        """Rank the user's favourite categories and brands from their orders.

        Returns None when the user has no customer record or no orders.
        """
        customer = await self.customers.find_by_user(user_id)
        if customer is None:
            return None

        orders = await self.orders.find_orders_by_user(user_id, ACTIVE_STATUSES)
        if not orders:
            return None

        product_ids = {item.product_id for order in orders for item in order.items}
        products = {p.id: p for p in await self.products.find_by_ids(product_ids)}

        updated = customer.model_copy(update={"preferences": derive_preferences(orders, products)})
        await self.customers.save(updated)
        return updated

    async def sync_all_customers(self) -> SyncReport:
        """Refresh metrics and preferences of every customer.

        A failure on one customer is recorded in the report and the batch
        carries on with the next one.
        """
        customers = await self.customers.find_all()
        report = SyncReport(total=len(customers))

        for customer in customers:
            try:
                await self.refresh_customer(customer)
                await self.update_preferences(customer.user_id)
                report.success += 1
                report.details.append({"customer_code": customer.customer_code, "status": "success"})
            except Exception as e:
                logger.error(
                    f"Failed to synchronize customer {customer.id}: {e}",
                    exc_info=True,
                )
                report.errors += 1
                report.details.append(
                    {
                        "customer_code": customer.customer_code,
                        "status": "error",
                        "error": str(e),
                    }
                )

        logger.info(f"Synchronization completed: {report.success}/{report.total} succeeded")
        return report

    async def create_missing_customers(self) -> ProvisionReport:
        """Create and refresh a customer for every ordering user without one.

        Users are taken from the non-cancelled order history. A failure for
        one user is recorded in the report and provisioning carries on.

        Returns:
            ProvisionReport with ``total`` users seen, how many records were
            ``created``, how many ``existing`` ones were left alone and the
            per-user ``details``.
        """
        orders = await self.orders.find_orders_by_status(ACTIVE_STATUSES)
        user_ids = sorted({order.user_id for order in orders})
        report = ProvisionReport(total=len(user_ids))

        for user_id in user_ids:
            if await self.customers.find_by_user(user_id) is not None:
                report.existing += 1
                continue

            try:
                customer = await self.create_customer_for_user(user_id)
                customer = await self.refresh_customer(customer)
                report.created += 1
                report.details.append(
                    {
                        "user_id": user_id,
                        "customer_code": customer.customer_code,
                        "status": "created",
                    }
                )
            except Exception as e:
                logger.error(
                    f"Failed to create customer for user {user_id}: {e}",
                    exc_info=True,
                )
                report.errors += 1
                report.details.append({"user_id": user_id, "status": "error", "error": str(e)})

        logger.info(
            "Provisioned missing customers",
            extra={"created": report.created, "existing": report.existing, "errors": report.errors},
        )
        return report

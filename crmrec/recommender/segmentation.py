"""Customer metrics and rule-based segmentation.

Everything here is a pure function of its inputs: the same metrics snapshot
always yields the same segment, churn risk and loyalty level. The update
pipeline in :mod:`crmrec.recommender.sync` calls these explicitly after each
order event.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from crmrec.recommender.models import (
    ChurnRisk,
    Customer,
    CustomerMetrics,
    CustomerPreferences,
    CustomerStatus,
    LoyaltyLevel,
    Order,
    Product,
    Segment,
    as_utc,
    utcnow,
)

# Configure module logger
logger = logging.getLogger(__name__)

HIGH_VALUE_THRESHOLD = 1_000_000

VIP_MIN_LIFETIME_VALUE = 2_000_000
VIP_MIN_ORDERS = 10
FRECUENTE_MIN_ORDERS = 5
FRECUENTE_MAX_DAYS = 30
OCASIONAL_MIN_ORDERS = 2
OCASIONAL_MAX_DAYS = 90
AT_RISK_DAYS = 90
INACTIVE_DAYS = 180

# Checked top-down, first match wins
LOYALTY_THRESHOLDS = (
    (5_000_000, LoyaltyLevel.DIAMANTE),
    (3_000_000, LoyaltyLevel.PLATINO),
    (1_500_000, LoyaltyLevel.ORO),
    (500_000, LoyaltyLevel.PLATA),
)

TOP_PREFERRED_CATEGORIES = 3
TOP_PREFERRED_BRANDS = 5


@dataclass(frozen=True)
class Classification:
    """Every label derived from one metrics snapshot."""

    segment: Segment
    churn_risk: Optional[ChurnRisk]
    loyalty_level: LoyaltyLevel
    lifetime_value: float
    is_high_value: bool


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since ``moment``, rounded up."""
    now = as_utc(now) or utcnow()
    hours = abs((now - as_utc(moment)).total_seconds()) / 3600
    return math.ceil(hours / 24)


def compute_metrics(orders: Iterable[Order], now: Optional[datetime] = None) -> CustomerMetrics:
    """Compute engagement metrics from a customer's orders.

    Cancelled orders are ignored.

    Args:
        orders: The customer's orders.
        now: Reference time for ``days_since_last_order``.

    Returns:
        CustomerMetrics snapshot. Without qualifying orders every counter is
        zero and the dates are None.
    """
    active = [order for order in orders if order.is_active]
    if not active:
        return CustomerMetrics()

    total_orders = len(active)
    total_spent = float(sum(order.total for order in active))
    last_order_date = max(order.created_at for order in active)

    return CustomerMetrics(
        total_orders=total_orders,
        total_spent=total_spent,
        average_order_value=total_spent / total_orders,
        last_order_date=last_order_date,
        days_since_last_order=days_since(last_order_date, now),
    )


def _days_at_most(metrics: CustomerMetrics, days: int) -> bool:
    return metrics.days_since_last_order is not None and metrics.days_since_last_order <= days


def _days_over(metrics: CustomerMetrics, days: int) -> bool:
    return metrics.days_since_last_order is not None and metrics.days_since_last_order > days


def derive_segment(metrics: CustomerMetrics) -> Segment:
    """Classify a customer from a metrics snapshot.

    Rules are evaluated in order and the first match wins:

    1. no orders -> Nuevo
    2. lifetime value >= 2,000,000 and >= 10 orders -> VIP
    3. >= 5 orders and last order within 30 days -> Frecuente
    4. >= 2 orders and last order within 90 days -> Ocasional
    5. last order more than 180 days ago -> Inactivo
    6. last order more than 90 days ago -> En Riesgo
    7. otherwise -> Ocasional
    """
    total_orders = metrics.total_orders
    lifetime_value = metrics.total_spent

    if total_orders == 0:
        return Segment.NUEVO
    if lifetime_value >= VIP_MIN_LIFETIME_VALUE and total_orders >= VIP_MIN_ORDERS:
        return Segment.VIP
    if total_orders >= FRECUENTE_MIN_ORDERS and _days_at_most(metrics, FRECUENTE_MAX_DAYS):
        return Segment.FRECUENTE
    if total_orders >= OCASIONAL_MIN_ORDERS and _days_at_most(metrics, OCASIONAL_MAX_DAYS):
        return Segment.OCASIONAL
    if _days_over(metrics, INACTIVE_DAYS):
        return Segment.INACTIVO
    if _days_over(metrics, AT_RISK_DAYS):
        return Segment.EN_RIESGO
    return Segment.OCASIONAL


def derive_churn_risk(metrics: CustomerMetrics) -> Optional[ChurnRisk]:
    """Churn risk from recency; None exactly when there are no orders."""
    if metrics.total_orders == 0:
        return None
    if _days_over(metrics, INACTIVE_DAYS):
        return ChurnRisk.ALTO
    if _days_over(metrics, AT_RISK_DAYS):
        return ChurnRisk.MEDIO
    return ChurnRisk.BAJO


def derive_loyalty(lifetime_value: float) -> LoyaltyLevel:
    """Loyalty tier for a lifetime value.

    Args:
        lifetime_value: Total spent over non-cancelled orders.

    Returns:
        The highest tier whose threshold is reached, Bronce below 500,000.
    """
    for threshold, level in LOYALTY_THRESHOLDS:
        if lifetime_value >= threshold:
            return level
    return LoyaltyLevel.BRONCE


def is_high_value(lifetime_value: float) -> bool:
    """Whether the lifetime value reaches ``HIGH_VALUE_THRESHOLD``."""
    return lifetime_value >= HIGH_VALUE_THRESHOLD


def classify(metrics: CustomerMetrics) -> Classification:
    """Derive every label from one metrics snapshot.

    Args:
        metrics: Snapshot produced by :func:`compute_metrics`.

    Returns:
        Classification with segment, churn risk, loyalty level, lifetime
        value and the high-value flag.
    """
    lifetime_value = metrics.total_spent
    return Classification(
        segment=derive_segment(metrics),
        churn_risk=derive_churn_risk(metrics),
        loyalty_level=derive_loyalty(lifetime_value),
        lifetime_value=lifetime_value,
        is_high_value=is_high_value(lifetime_value),
    )


def apply_metrics(customer: Customer, metrics: CustomerMetrics) -> Customer:
    """Return a copy of ``customer`` carrying ``metrics`` and every derived label."""
    labels = classify(metrics)
    return customer.model_copy(
        update={
            "metrics": metrics,
            "segment": labels.segment,
            "churn_risk": labels.churn_risk,
            "loyalty_level": labels.loyalty_level,
            "lifetime_value": labels.lifetime_value,
            "is_high_value": labels.is_high_value,
        }
    )


def derive_preferences(
    orders: Iterable[Order],
    products: Dict[str, Product],
) -> CustomerPreferences:
    """Rank the categories and brands a customer buys most, by quantity.

    Args:
        orders: The customer's orders; cancelled ones are ignored.
        products: Product lookup by id. Lines whose product no longer exists
            are skipped.
    """
    category_count: Counter = Counter()
    brand_count: Counter = Counter()

    for order in orders:
        if not order.is_active:
            continue
        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                continue
            for category in product.categories:
                category_count[category] += item.quantity
            if product.brand:
                brand_count[product.brand] += item.quantity

    def top(counter: Counter, n: int) -> List[str]:
        ranked = sorted(counter.items(), key=lambda x: (-x[1], x[0]))
        return [name for name, _ in ranked[:n]]

    return CustomerPreferences(
        categories=top(category_count, TOP_PREFERRED_CATEGORIES),
        brands=top(brand_count, TOP_PREFERRED_BRANDS),
    )


def segment_stats(customers: Iterable[Customer]) -> pd.DataFrame:
    """Per-segment customer counts and lifetime value for active customers.

    Returns:
        DataFrame with columns ``segment``, ``count``, ``avg_lifetime_value``
        and ``total_revenue``, sorted by revenue descending.
    """
    columns = ["segment", "count", "avg_lifetime_value", "total_revenue"]
    rows = [
        {"segment": c.segment.value, "lifetime_value": c.lifetime_value}
        for c in customers
        if c.status == CustomerStatus.ACTIVO
    ]
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows)
    stats = (
        df.groupby("segment")["lifetime_value"]
        .agg(count="size", avg_lifetime_value="mean", total_revenue="sum")
        .reset_index()
        .sort_values(["total_revenue", "segment"], ascending=[False, True])
        .reset_index(drop=True)
    )
    return stats[columns]


def high_value_customers(customers: Iterable[Customer], limit: int = 10) -> List[Customer]:
    """Active high-value customers by lifetime value.

    Args:
        customers: Customers to rank.
        limit: Maximum number returned.

    Returns:
        Customers sorted by lifetime value descending, ties by id.
    """
    ranked = [
        c for c in customers if c.is_high_value and c.status == CustomerStatus.ACTIVO
    ]
    ranked.sort(key=lambda c: (-c.lifetime_value, c.id))
    return ranked[:limit]


def churn_risk_customers(customers: Iterable[Customer]) -> List[Customer]:
    """Active customers at medium or high churn risk, longest-absent first."""
    at_risk = [
        c
        for c in customers
        if c.churn_risk in (ChurnRisk.MEDIO, ChurnRisk.ALTO) and c.status == CustomerStatus.ACTIVO
    ]
    at_risk.sort(key=lambda c: (-(c.metrics.days_since_last_order or 0), c.id))
    return at_risk

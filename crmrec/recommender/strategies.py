"""Recommendation strategies over order history.

Provides item-based collaborative filtering on the co-occurrence graph, a
user-based aggregation on top of it, and popularity, category and
segment-based recommenders. Popularity is the universal fallback: any
strategy that finds nothing returns popular products instead.
"""

import logging
import time
from typing import Dict, List, Optional

import pandas as pd

from crmrec.recommender.cooccurrence import (
    CoOccurrenceCache,
    CoOccurrenceMatrix,
    build_cooccurrence_matrix,
)
from crmrec.recommender.models import (
    ACTIVE_STATUSES,
    Order,
    RecommendationEntry,
    RecommendationStats,
    Segment,
)
from crmrec.recommender.stores import CustomerStore, OrderStore, ProductStore

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_ITEM_LIMIT = 5
DEFAULT_TOP_N = 10

REASON_BOUGHT_TOGETHER = "Frequently bought together"
REASON_POPULAR = "Popular product"
REASON_HISTORY = "Based on your purchase history"
REASON_POPULAR_FALLBACK = "Based on global popularity"

SEGMENT_PREFERENCES: Dict[Segment, List[str]] = {
    Segment.VIP: ["Proteína", "Pre-Entreno", "Creatina", "Aminoácidos"],
    Segment.FRECUENTE: ["Proteína", "Vitaminas", "Snacks"],
    Segment.OCASIONAL: ["Proteína", "Snacks"],
    Segment.NUEVO: ["Proteína", "Vitaminas"],
    Segment.INACTIVO: ["Quemadores", "Vitaminas"],
    Segment.EN_RIESGO: ["Proteína", "Snacks"],
}


def category_reason(category: str) -> str:
    """Reason attached to category recommendations."""
    return f"Products in {category}"


def segment_reason(segment: Segment) -> str:
    """Reason attached to segment recommendations."""
    return f"Recommended for {segment.value} customers"


def _check_limit(limit: int) -> None:
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")


class RecommendationEngine:
    """Runs the individual recommendation strategies against the stores."""

    def __init__(
        self,
        order_store: OrderStore,
        product_store: ProductStore,
        customer_store: CustomerStore,
        matrix_cache: Optional[CoOccurrenceCache] = None,
    ):
        self.orders = order_store
        self.products = product_store
        self.customers = customer_store
        self.matrix_cache = matrix_cache

        logger.info(
            f"Initialized RecommendationEngine: "
            f"matrix cache={'enabled' if matrix_cache else 'disabled'}"
        )

    def _matrix_for(self, orders: List[Order]) -> CoOccurrenceMatrix:
        if self.matrix_cache is not None:
            return self.matrix_cache.get_or_build(orders)
        return build_cooccurrence_matrix(orders)

    async def cooccurrence_matrix(self) -> CoOccurrenceMatrix:
        """Co-occurrence matrix over every non-cancelled order.

        Returns:
            The cached matrix when the order snapshot is unchanged and a
            cache is configured, otherwise a fresh build.
        """
        orders = await self.orders.find_orders_by_status(ACTIVE_STATUSES)
        return self._matrix_for(orders)

    async def item_based(
        self,
        product_id: str,
        limit: int = DEFAULT_ITEM_LIMIT,
        matrix: Optional[CoOccurrenceMatrix] = None,
    ) -> List[RecommendationEntry]:
        """Products most often bought together with ``product_id``.

        Partners are ranked by co-purchase count (ties by product id), the
        top ``limit`` are looked up, and partners whose product no longer
        exists are dropped.

        Args:
            product_id: Seed product.
            limit: Maximum number of partners considered.
            matrix: Prebuilt matrix to reuse; built from the order store
                when omitted.

        Returns:
            Entries scored by co-purchase count; empty if the product has
            no co-purchase history.
        """
        _check_limit(limit)
        if matrix is None:
            matrix = await self.cooccurrence_matrix()

        ranked = matrix.ranked_partners(product_id, limit)
        if not ranked:
            logger.debug(f"No co-purchase history for product {product_id}")
            return []

        products = await self.products.find_by_ids([pid for pid, _ in ranked])
        products_by_id = {p.id: p for p in products}

        entries = [
            RecommendationEntry(
                product=products_by_id[pid],
                score=count,
                reason=REASON_BOUGHT_TOGETHER,
            )
            for pid, count in ranked
            if pid in products_by_id
        ]

        if len(entries) < len(ranked):
            logger.info(
                "Dropped deleted products from item-based results",
                extra={"product_id": product_id, "dropped": len(ranked) - len(entries)},
            )
        return entries

    async def popular(self, limit: int = DEFAULT_TOP_N) -> List[RecommendationEntry]:
        """Best sellers by total quantity over non-cancelled orders.

        Args:
            limit: Number of products to return.

        Returns:
            Entries scored by units sold, ties by product id, carrying
            ``total_quantity`` and ``total_orders``. Products missing from
            the catalog are skipped, so fewer than ``limit`` may come back.
        """
        _check_limit(limit)
        orders = await self.orders.find_orders_by_status(ACTIVE_STATUSES)

        lines = [
            {"product_id": item.product_id, "quantity": item.quantity}
            for order in orders
            for item in order.items
        ]
        if not lines:
            logger.warning("No order lines available for popularity ranking")
            return []

        df = pd.DataFrame(lines)
        totals = (
            df.groupby("product_id")["quantity"]
            .agg(total_quantity="sum", total_orders="size")
            .reset_index()
            .sort_values(["total_quantity", "product_id"], ascending=[False, True])
            .head(limit)
        )

        products = await self.products.find_by_ids(totals["product_id"].tolist())
        products_by_id = {p.id: p for p in products}

        entries = []
        for row in totals.itertuples(index=False):
            product = products_by_id.get(row.product_id)
            if product is None:
                continue
            entries.append(
                RecommendationEntry(
                    product=product,
                    score=int(row.total_quantity),
                    reason=REASON_POPULAR,
                    total_quantity=int(row.total_quantity),
                    total_orders=int(row.total_orders),
                )
            )
        return entries

    async def by_category(self, category: str, limit: int = DEFAULT_TOP_N) -> List[RecommendationEntry]:
        """Newest in-stock products of ``category``.

        Args:
            category: Catalog category name.
            limit: Maximum number of products.

        Returns:
            Entries with a constant score of 1, newest product first.
        """
        _check_limit(limit)
        products = await self.products.find_by_category(category, in_stock=True)
        return [
            RecommendationEntry(product=product, score=1, reason=category_reason(category))
            for product in products[:limit]
        ]

    async def segment_based(self, user_id: str, limit: int = DEFAULT_TOP_N) -> List[RecommendationEntry]:
        """Products from the categories preferred by the user's segment.

        Falls back to popular products when the user has no customer
        record, the segment has no category mapping, or the categories are
        empty.
        """
        _check_limit(limit)
        customer = await self.customers.find_by_user(user_id)
        if customer is None or customer.segment is None:
            logger.info(f"No segment for user {user_id}, using popular products")
            return await self.popular(limit)

        categories = SEGMENT_PREFERENCES.get(customer.segment)
        if not categories:
            logger.info(f"No category mapping for segment {customer.segment}, using popular products")
            return await self.popular(limit)

        merged: List[RecommendationEntry] = []
        seen = set()
        reason = segment_reason(customer.segment)
        for category in categories:
            for entry in await self.by_category(category, limit):
                if entry.product_id in seen:
                    continue
                seen.add(entry.product_id)
                merged.append(entry.model_copy(update={"reason": reason}))
                if len(merged) >= limit:
                    return merged

        if not merged:
            return await self.popular(limit)
        return merged

    async def user_based(
        self,
        user_id: str,
        limit: int = DEFAULT_TOP_N,
        matrix: Optional[CoOccurrenceMatrix] = None,
    ) -> List[RecommendationEntry]:
        """Aggregate item-based results over everything the user bought.

        Candidates accumulate the co-purchase counts of every purchased
        product that recommends them; products the user already owns are
        excluded.

        Args:
            user_id: User whose history is used.
            limit: Number of recommendations.
            matrix: Prebuilt matrix to reuse.

        Returns:
            Ranked entries. Users without orders get exactly the popular
            products; an empty candidate set yields popular products
            annotated as a fallback.
        """
        _check_limit(limit)
        start_time = time.perf_counter()

        user_orders = await self.orders.find_orders_by_user(user_id, ACTIVE_STATUSES)
        if not user_orders:
            logger.info(
                "User has no orders, using popular products",
                extra={"user_id": user_id, "strategy": "cold_start"},
            )
            return await self.popular(limit)

        purchased = {pid for order in user_orders for pid in order.distinct_product_ids()}
        if matrix is None:
            matrix = await self.cooccurrence_matrix()

        candidates: Dict[str, Dict] = {}
        for product_id in sorted(purchased):
            for rec in await self.item_based(product_id, limit, matrix=matrix):
                if rec.product_id in purchased:
                    continue
                candidate = candidates.setdefault(
                    rec.product_id, {"product": rec.product, "score": 0, "reasons": []}
                )
                candidate["score"] += rec.score
                candidate["reasons"].append(rec.reason)

        ranked = sorted(candidates.values(), key=lambda c: (-c["score"], c["product"].id))[:limit]
        recommendations = [
            RecommendationEntry(
                product=c["product"],
                score=c["score"],
                reason=c["reasons"][0] if c["reasons"] else REASON_HISTORY,
                reasons=c["reasons"],
            )
            for c in ranked
        ]

        if not recommendations:
            logger.info(
                "No co-purchase candidates, using popular products",
                extra={"user_id": user_id, "strategy": "popular_fallback"},
            )
            fallback = await self.popular(limit)
            return [
                entry.model_copy(
                    update={"reason": REASON_POPULAR_FALLBACK, "reasons": [entry.reason]}
                )
                for entry in fallback
            ]

        logger.info(
            "User-based recommendations generated",
            extra={
                "user_id": user_id,
                "num_purchased": len(purchased),
                "num_candidates": len(candidates),
                "num_recommendations": len(recommendations),
                "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return recommendations

    async def recommendation_stats(self) -> RecommendationStats:
        """Size of the catalog, the order history and the co-occurrence graph."""
        orders = await self.orders.find_orders_by_status(ACTIVE_STATUSES)
        total_products = await self.products.count()
        matrix = self._matrix_for(orders)

        avg_items = sum(len(o.items) for o in orders) / len(orders) if orders else 0.0

        return RecommendationStats(
            total_products=total_products,
            total_orders=len(orders),
            total_users=len({o.user_id for o in orders}),
            avg_items_per_order=round(avg_items, 2),
            avg_cooccurrences=round(matrix.average_partners, 2),
            matrix_size=matrix.size,
        )


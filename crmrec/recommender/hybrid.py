"""Hybrid recommendation module.

Combines the individual strategies into labeled buckets for a customer
profile and scores how much the result can be trusted.
"""

import logging
import math
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from crmrec.recommender.cooccurrence import CoOccurrenceMatrix
from crmrec.recommender.exceptions import CustomerNotFoundError
from crmrec.recommender.models import (
    CustomerProfile,
    HybridRecommendations,
    LoyaltyLevel,
    OrderStatus,
    RecommendationBuckets,
    RecommendationEntry,
    Segment,
    UserRecommendations,
    as_utc,
    utcnow,
)
from crmrec.recommender.strategies import DEFAULT_TOP_N, RecommendationEngine

# Configure module logger
logger = logging.getLogger(__name__)

PREMIUM_PRICE_FLOOR = 1500
UPSELL_LIMIT = 3
SIMILAR_LIMIT = 3
TRENDING_LIMIT = 3
MIN_FEATURED_FALLBACK = 3
CROSS_SELL_PER_CATEGORY = 2
MAX_CROSS_SELL_CATEGORIES = 2
UPSELL_SEGMENTS = frozenset({Segment.VIP, Segment.FRECUENTE})

REASON_PREMIUM = "Recommended premium product"

COMPLEMENTARY_CATEGORIES: Dict[str, List[str]] = {
    "Proteína": ["Creatina", "Aminoácidos", "Snacks"],
    "Creatina": ["Proteína", "Pre-Entreno"],
    "Pre-Entreno": ["Aminoácidos", "Proteína"],
    "Vitaminas": ["Proteína", "Snacks"],
    "Quemadores": ["Vitaminas", "Aminoácidos"],
    "Ganadores": ["Creatina", "Proteína"],
}
DEFAULT_COMPLEMENTARY = ["Proteína"]

# Confidence score weights
ORDER_HISTORY_WEIGHT = 0.3
ORDER_HISTORY_SATURATION = 10
SEGMENT_BONUS = 0.25
RECENT_ACTIVITY_BONUS = 0.2
RECENT_ACTIVITY_DAYS = 30
NEUTRAL_CONFIDENCE = 0.5
LOYALTY_BONUS = {
    LoyaltyLevel.BRONCE: 0.1,
    LoyaltyLevel.PLATA: 0.15,
    LoyaltyLevel.ORO: 0.2,
    LoyaltyLevel.PLATINO: 0.25,
    LoyaltyLevel.DIAMANTE: 0.25,
}


def dedupe_by_product(entries: Iterable[RecommendationEntry]) -> List[RecommendationEntry]:
    """Drop repeated products, keeping the first occurrence."""
    seen = set()
    unique = []
    for entry in entries:
        if entry.product_id in seen:
            continue
        seen.add(entry.product_id)
        unique.append(entry)
    return unique


def calculate_confidence_score(profile: CustomerProfile, now: Optional[datetime] = None) -> float:
    """Score in [0, 1] for how well the profile supports personalization.

    Four independent factors add up: order history (up to 0.3), a segment
    other than Nuevo (0.25), the loyalty tier (up to 0.25) and an order in
    the last 30 days (0.2). When no factor applies the score is 0.5.
    """
    now = as_utc(now) or utcnow()
    score = 0.0
    factors = 0

    if profile.total_orders > 0:
        score += min(profile.total_orders / ORDER_HISTORY_SATURATION, 1) * ORDER_HISTORY_WEIGHT
        factors += 1

    if profile.segment is not None and profile.segment != Segment.NUEVO:
        score += SEGMENT_BONUS
        factors += 1

    if profile.loyalty_level is not None:
        score += LOYALTY_BONUS.get(profile.loyalty_level, 0.0)
        factors += 1

    if profile.last_order_date is not None:
        days = (now - profile.last_order_date).total_seconds() / 86400
        if days < RECENT_ACTIVITY_DAYS:
            score += RECENT_ACTIVITY_BONUS
            factors += 1

    if factors == 0:
        return NEUTRAL_CONFIDENCE
    return min(max(score, 0.0), 1.0)


class HybridRecommender:
    """Builds featured, cross-sell, upsell, similar and trending buckets."""

    def __init__(
        self,
        engine: RecommendationEngine,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.engine = engine
        self.clock = clock

    async def _similar_to_last_delivered(
        self,
        user_id: str,
        limit: int,
        matrix: Optional[CoOccurrenceMatrix] = None,
    ) -> List[RecommendationEntry]:
        """Item-based results seeded by the first line of the latest delivered order."""
        delivered = await self.engine.orders.find_orders_by_user(user_id, [OrderStatus.DELIVERED])
        if not delivered:
            return []

        last_order = max(delivered, key=lambda o: o.created_at)
        if not last_order.items:
            return []

        seed = last_order.items[0].product_id
        return await self.engine.item_based(seed, limit, matrix=matrix)

    async def _cross_sell(self, profile: CustomerProfile) -> List[RecommendationEntry]:
        """Products from categories that complement the favourite one.

        Up to two complementary categories of the top preferred category
        contribute two products each. Profiles without preferences get
        nothing.
        """
        if not profile.preferences.categories:
            return []

        favorite = profile.preferences.categories[0]
        complementary = COMPLEMENTARY_CATEGORIES.get(favorite, DEFAULT_COMPLEMENTARY)

        entries: List[RecommendationEntry] = []
        for category in complementary[:MAX_CROSS_SELL_CATEGORIES]:
            entries.extend(await self.engine.by_category(category, CROSS_SELL_PER_CATEGORY))
        return entries

    async def _upsell(self, profile: CustomerProfile) -> List[RecommendationEntry]:
        """Most expensive in-stock premium products, for VIP and Frecuente only."""
        if profile.segment not in UPSELL_SEGMENTS:
            return []

        premium = await self.engine.products.find_premium(PREMIUM_PRICE_FLOOR, in_stock=True)
        return [
            RecommendationEntry(product=product, score=1, reason=REASON_PREMIUM)
            for product in premium[:UPSELL_LIMIT]
        ]

    async def recommend_for_customer(
        self, customer_id: str, limit: int = DEFAULT_TOP_N
    ) -> HybridRecommendations:
        """Get bucketed recommendations for a CRM customer.

        Args:
            customer_id: Customer record id.
            limit: Size hint; the featured bucket holds half of it.

        Returns:
            HybridRecommendations with the five buckets, the confidence
            score and the generation time.

        Raises:
            CustomerNotFoundError: If the customer does not exist.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        start_time = time.perf_counter()
        customer = await self.engine.customers.find_by_id(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        profile = CustomerProfile.from_customer(customer)
        user_id = profile.user_id
        half = math.ceil(limit / 2)
        matrix = await self.engine.cooccurrence_matrix()

        featured = (await self.engine.user_based(user_id, limit, matrix=matrix))[:half]
        if not featured:
            featured = await self.engine.popular(max(MIN_FEATURED_FALLBACK, half))

        cross_sell = await self._cross_sell(profile)
        upsell = await self._upsell(profile)
        similar = await self._similar_to_last_delivered(user_id, SIMILAR_LIMIT, matrix)

        trending: List[RecommendationEntry] = []
        if profile.segment is not None:
            trending = await self.engine.segment_based(user_id, TRENDING_LIMIT)
        if not trending:
            trending = await self.engine.popular(TRENDING_LIMIT)

        buckets = RecommendationBuckets(
            featured=dedupe_by_product(featured),
            cross_sell=dedupe_by_product(cross_sell),
            upsell=dedupe_by_product(upsell),
            similar=dedupe_by_product(similar),
            trending=dedupe_by_product(trending),
        )

        now = self.clock()
        result = HybridRecommendations(
            profile=profile,
            recommendations=buckets,
            confidence_score=calculate_confidence_score(profile, now),
            total_recommendations=buckets.total(),
            generated_at=now,
        )

        logger.info(
            "Generated hybrid recommendations",
            extra={
                "customer_id": customer_id,
                "segment": profile.segment.value if profile.segment else None,
                "total_recommendations": result.total_recommendations,
                "confidence_score": round(result.confidence_score, 3),
                "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return result

    async def recommend_for_user(
        self,
        user_id: str,
        limit: int = DEFAULT_TOP_N,
        include_popular: bool = True,
        include_segment: bool = True,
        include_similar: bool = True,
    ) -> UserRecommendations:
        """Get personalized, popular, segment and similar lists for a user.

        Unlike :meth:`recommend_for_customer` this needs no customer record;
        the segment list falls back to popular products without one.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        half = math.ceil(limit / 2)
        matrix = await self.engine.cooccurrence_matrix()
        result = UserRecommendations(
            user_id=user_id,
            personalized=await self.engine.user_based(user_id, limit, matrix=matrix),
        )

        if include_popular:
            result.popular = await self.engine.popular(half)
        if include_segment:
            result.segment = await self.engine.segment_based(user_id, half)
        if include_similar:
            result.similar = await self._similar_to_last_delivered(user_id, half, matrix)

        return result

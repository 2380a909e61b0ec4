"""Recommendation endpoints for the CRMRec API.

Thin wrappers around :class:`RecommendationEngine` and
:class:`HybridRecommender`; every call is timed in the metrics service.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from crmrec.api.dependencies import Services, get_services
from crmrec.api.metrics import metrics_service
from crmrec.recommender.exceptions import ProductNotFoundError
from crmrec.recommender.models import (
    HybridRecommendations,
    RecommendationEntry,
    RecommendationStats,
    UserRecommendations,
)

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"],
)

MAX_LIMIT = 100


class RecommendationListResponse(BaseModel):
    """Ranked recommendations.

    Attributes:
        count: Number of entries in ``data``.
        data: Entries with the product, score and reason.
        category: Category asked for, on category listings only.
    """

    count: int = Field(..., description="Number of recommendations")
    data: List[RecommendationEntry] = Field(..., description="Ranked recommendations")
    category: Optional[str] = Field(default=None, description="Requested category")


def _listing(entries: List[RecommendationEntry], category: Optional[str] = None) -> RecommendationListResponse:
    return RecommendationListResponse(count=len(entries), data=entries, category=category)


@router.get("/popular", response_model=RecommendationListResponse)
async def popular_products(
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    services: Services = Depends(get_services),
) -> RecommendationListResponse:
    """Best-selling products by quantity."""
    with metrics_service.track("popular"):
        entries = await services.engine.popular(limit or services.default_limit)
    return _listing(entries)


@router.get("/category/{category}", response_model=RecommendationListResponse)
async def category_products(
    category: str,
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    services: Services = Depends(get_services),
) -> RecommendationListResponse:
    """Newest in-stock products of a category."""
    with metrics_service.track("category"):
        entries = await services.engine.by_category(category, limit or services.default_limit)
    return _listing(entries, category=category)


@router.get("/similar/{product_id}", response_model=RecommendationListResponse)
async def similar_products(
    product_id: str,
    limit: int = Query(5, ge=1, le=MAX_LIMIT),
    services: Services = Depends(get_services),
) -> RecommendationListResponse:
    """Products frequently bought together with ``product_id``.

    Raises:
        ProductNotFoundError: If the product does not exist (404).
    """
    if await services.engine.products.find_by_id(product_id) is None:
        raise ProductNotFoundError(product_id)

    with metrics_service.track("item_based"):
        entries = await services.engine.item_based(product_id, limit)
    return _listing(entries)


@router.get("/user/{user_id}", response_model=RecommendationListResponse)
async def user_recommendations(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    services: Services = Depends(get_services),
) -> RecommendationListResponse:
    """Recommendations from the user's purchase history.

    Example:
        GET /recommendations/user/42?limit=5
    """
    limit = limit or services.default_limit
    logger.info(f"Generating recommendations for user {user_id}, limit={limit}")
    with metrics_service.track("user_based"):
        entries = await services.engine.user_based(user_id, limit)
    return _listing(entries)


@router.get("/hybrid/{user_id}", response_model=UserRecommendations)
async def hybrid_user_recommendations(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    include_popular: bool = True,
    include_segment: bool = True,
    include_similar: bool = True,
    services: Services = Depends(get_services),
) -> UserRecommendations:
    """Personalized, popular, segment and similar lists for a user."""
    with metrics_service.track("hybrid_user"):
        return await services.hybrid.recommend_for_user(
            user_id,
            limit or services.default_limit,
            include_popular=include_popular,
            include_segment=include_segment,
            include_similar=include_similar,
        )


@router.get("/stats", response_model=RecommendationStats)
async def recommendation_stats(services: Services = Depends(get_services)) -> RecommendationStats:
    """Catalog, order history and co-occurrence graph sizes."""
    return await services.engine.recommendation_stats()


@router.get("/customer/{customer_id}", response_model=HybridRecommendations)
async def customer_recommendations(
    customer_id: str,
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    services: Services = Depends(get_services),
) -> HybridRecommendations:
    """Bucketed recommendations for a CRM customer profile.

    Raises:
        CustomerNotFoundError: If the customer does not exist (404).
    """
    with metrics_service.track("hybrid_customer"):
        return await services.hybrid.recommend_for_customer(
            customer_id, limit or services.default_limit
        )

"""Customer endpoints for the CRMRec API.

Expose the segmentation pipeline: refreshing one customer, synchronizing a
user after an order, batch resynchronization and segment reports.
"""

import logging
from dataclasses import asdict
from typing import Dict, List

from fastapi import APIRouter, Depends, Query

from crmrec.api.dependencies import Services, get_services
from crmrec.recommender.exceptions import CustomerNotFoundError
from crmrec.recommender.models import Customer
from crmrec.recommender.segmentation import (
    churn_risk_customers,
    high_value_customers,
    segment_stats,
)

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["customers"],
)


@router.get("/segments/stats")
async def get_segment_stats(services: Services = Depends(get_services)) -> List[Dict]:
    """Customer count and lifetime value per segment."""
    customers = await services.dataset.customers.find_all()
    return segment_stats(customers).to_dict(orient="records")


@router.get("/high-value", response_model=List[Customer])
async def get_high_value_customers(
    limit: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
) -> List[Customer]:
    customers = await services.dataset.customers.find_all()
    return high_value_customers(customers, limit)


@router.get("/churn-risk", response_model=List[Customer])
async def get_churn_risk_customers(services: Services = Depends(get_services)) -> List[Customer]:
    customers = await services.dataset.customers.find_all()
    return churn_risk_customers(customers)


@router.post("/sync")
async def sync_all(services: Services = Depends(get_services)) -> Dict:
    """Recompute every customer from the order history."""
    report = await services.sync.sync_all_customers()
    return asdict(report)


@router.post("/provision")
async def provision_customers(services: Services = Depends(get_services)) -> Dict:
    """Create customer records for every ordering user that has none."""
    report = await services.sync.create_missing_customers()
    return asdict(report)


@router.post("/users/{user_id}/sync", response_model=Customer)
async def sync_user(user_id: str, services: Services = Depends(get_services)) -> Customer:
    """Create or refresh the customer of ``user_id`` after an order event."""
    return await services.sync.sync_after_order(user_id)


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(customer_id: str, services: Services = Depends(get_services)) -> Customer:
    customer = await services.dataset.customers.find_by_id(customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


@router.post("/{customer_id}/refresh", response_model=Customer)
async def refresh_customer(customer_id: str, services: Services = Depends(get_services)) -> Customer:
    """Recompute metrics, segment, churn risk and loyalty level."""
    logger.info(f"Refreshing customer {customer_id}")
    return await services.sync.update_customer_metrics(customer_id)

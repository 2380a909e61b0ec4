"""Wiring of stores and services for the API.

Services are built once from the configured data directory and cached at
module level; tests install their own with :func:`set_services`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from crmrec.config import Settings
from crmrec.recommender.cooccurrence import CoOccurrenceCache
from crmrec.recommender.exceptions import DatasetError
from crmrec.recommender.hybrid import HybridRecommender
from crmrec.recommender.strategies import DEFAULT_TOP_N, RecommendationEngine
from crmrec.recommender.sync import CustomerSyncService
from crmrec.recommender.utils import Dataset, load_dataset

# Configure module logger
logger = logging.getLogger(__name__)

_services_cache: Optional["Services"] = None


@dataclass
class Services:
    dataset: Dataset
    engine: RecommendationEngine
    hybrid: HybridRecommender
    sync: CustomerSyncService
    default_limit: int = DEFAULT_TOP_N


def build_services(
    dataset: Dataset,
    cache_matrix: bool = True,
    default_limit: int = DEFAULT_TOP_N,
) -> Services:
    engine = RecommendationEngine(
        dataset.orders,
        dataset.products,
        dataset.customers,
        matrix_cache=CoOccurrenceCache() if cache_matrix else None,
    )
    return Services(
        dataset=dataset,
        engine=engine,
        hybrid=HybridRecommender(engine),
        sync=CustomerSyncService(dataset.orders, dataset.products, dataset.customers),
        default_limit=default_limit,
    )


def set_services(services: Optional[Services]) -> None:
    global _services_cache
    _services_cache = services


def services_loaded() -> bool:
    return _services_cache is not None


def get_services() -> Services:
    """Return the cached services, loading the dataset on first use.

    Raises:
        DatasetError: If the configured dataset cannot be loaded.
    """
    global _services_cache

    if _services_cache is not None:
        return _services_cache

    settings = Settings.from_env()
    try:
        logger.info(f"Loading dataset from {settings.data_dir}")
        dataset = load_dataset(settings.data_dir)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load dataset: {e}", exc_info=True)
        raise DatasetError(settings.data_dir, e) from e

    _services_cache = build_services(
        dataset,
        cache_matrix=settings.cache_matrix,
        default_limit=settings.default_limit,
    )
    return _services_cache

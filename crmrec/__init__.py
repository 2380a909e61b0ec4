"""CRMRec: purchase-graph product recommendations with customer segmentation.

This package provides a backend service for generating product recommendations
from order co-occurrence and for classifying customers into CRM segments.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: recommendation strategies, segmentation and store interfaces
"""

__version__ = "0.1.0"

"""Custom exceptions for CRMRec.

Each exception carries the HTTP status code the API layer answers with.
"""

from typing import Any, Dict, Optional


class CRMRecException(Exception):
    """Base exception for CRMRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class NotFoundError(CRMRecException):
    """Raised when a lookup by id finds nothing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=404, details=details)


class CustomerNotFoundError(NotFoundError):
    """Raised when a customer id does not exist."""

    def __init__(self, customer_id: str):
        super().__init__(
            message=f"Customer {customer_id} not found",
            details={"customer_id": customer_id},
        )
        self.customer_id = customer_id


class ProductNotFoundError(NotFoundError):
    """Raised when a product id does not exist."""

    def __init__(self, product_id: str):
        super().__init__(
            message=f"Product {product_id} not found",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class DatasetError(CRMRecException):
    """Raised when the order/product dataset cannot be loaded."""

    def __init__(self, path: str, error: Exception):
        message = f"Failed to load dataset from '{path}': {error}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "path": path,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )

"""Custom exceptions for the CraftRec API.

Defines specific exception types for better error handling and reporting.
"""

from typing import Any, Dict, Optional, Union


class CraftRecException(Exception):
    """Base exception for CraftRec API errors."""

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


class ProductNotFoundError(CraftRecException):
    """Raised when a referenced product is not in the catalog."""

    def __init__(self, product_id: Union[int, str]):
        super().__init__(
            message=f"Product '{product_id}' not found in catalog.",
            status_code=404,
            details={"product_id": product_id},
        )


class CatalogUnavailableError(CraftRecException):
    """Raised when the product catalog cannot be queried."""

    def __init__(self, error: Exception):
        super().__init__(
            message=f"Product catalog unavailable: {str(error)}",
            status_code=503,
            details={
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class InvalidLimitError(CraftRecException):
    """Raised when a result limit is out of range."""

    def __init__(self, limit: int, max_limit: int):
        super().__init__(
            message=f"limit must be between 1 and {max_limit}, got {limit}",
            status_code=422,
            details={"limit": limit, "max_limit": max_limit},
        )

"""
Order lifecycle errors.

Every error carries a human readable message and the HTTP status the API
layer answers with. None of them is retried by the service.
"""
from typing import Dict, Optional


class OrderLifecycleError(Exception):
    """Base class for errors a caller can recover from."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(OrderLifecycleError):
    """Order, product, address or store does not exist."""
    status_code = 404


class UnauthorizedError(OrderLifecycleError):
    """Actor does not own the order or the store."""
    status_code = 403


class InvalidStateError(OrderLifecycleError):
    """Operation is not legal from the order's current status, or the listing is not sellable."""
    status_code = 409


class InsufficientStockError(OrderLifecycleError):
    """Stock reservation failed."""
    status_code = 409


class OrderNumberConflictError(OrderLifecycleError):
    """Could not find a free order number within the configured attempts."""
    status_code = 503

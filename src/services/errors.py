"""Domain exceptions raised by the storefront services.

Every exception carries a stable ``code`` that the HTTP layer reports to
clients. Messages are safe to show; driver errors are never embedded.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(StorefrontError):
    """Input failed validation before any I/O was performed."""

    code = "invalid_request"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class AuthenticationError(StorefrontError):
    code = "unauthenticated"


class ForbiddenError(StorefrontError):
    code = "forbidden"


class NotFoundError(StorefrontError):
    code = "not_found"


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class EmptyCartError(StorefrontError):
    code = "empty_cart"

    def __init__(self) -> None:
        super().__init__("Cart is empty")


class InsufficientStockError(StorefrontError):
    """Requested quantity exceeds what is available for a product."""

    code = "insufficient_stock"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        product_name: str | None = None,
    ) -> None:
        label = product_name or product_id
        super().__init__(
            f"Insufficient stock for {label}. Only {available} available."
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)


class InvalidStatusError(StorefrontError):
    code = "invalid_status"

    def __init__(self, status: str) -> None:
        super().__init__(f"Invalid order status: {status}")
        self.status = status


class InvalidStateError(StorefrontError):
    code = "invalid_state"


class StoreUnavailableError(StorefrontError):
    """The persistent store failed or timed out; the operation may be retried."""

    code = "store_unavailable"

    def __init__(self, message: str = "Data store temporarily unavailable") -> None:
        super().__init__(message)

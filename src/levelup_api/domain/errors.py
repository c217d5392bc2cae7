"""Failure taxonomy raised by the storefront services.

Every service operation that raises one of these has already rolled back its
transaction, so callers can surface the error without compensating anything.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class StorefrontError(RuntimeError):
    """Base exception for storefront domain failures."""

    code = "storefront_error"


class NotFoundError(StorefrontError):
    """Raised when a referenced record does not exist."""

    code = "not_found"
    entity = "record"

    def __init__(self, reference: Any) -> None:
        super().__init__(f"{self.entity.capitalize()} {reference} not found")
        self.reference = reference


class AccountNotFoundError(NotFoundError):
    entity = "account"


class ProductNotFoundError(NotFoundError):
    entity = "product"


class OrderNotFoundError(NotFoundError):
    entity = "order"


class RedemptionNotFoundError(NotFoundError):
    entity = "redemption"


class InsufficientStockError(StorefrontError):
    """Raised when an order line asks for more units than are in stock."""

    code = "insufficient_stock"

    def __init__(self, product_id: UUID, product_name: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_name}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class InsufficientPointsError(StorefrontError):
    """Raised when an account does not hold enough points for a debit."""

    code = "insufficient_points"

    def __init__(self, account_id: UUID | None, requested: int, available: int) -> None:
        super().__init__(f"Account {account_id}: requested {requested} points, available {available}")
        self.account_id = account_id
        self.requested = requested
        self.available = available


class InvalidInputError(StorefrontError):
    """Raised for malformed or empty requests."""

    code = "invalid_input"


class InvalidStatusTransitionError(InvalidInputError):
    """Raised when a status change is not allowed by the transition table."""

    code = "invalid_transition"

    def __init__(self, current_status: str, requested_status: str) -> None:
        super().__init__(f"Cannot transition from {current_status} to {requested_status}")
        self.current_status = current_status
        self.requested_status = requested_status


class DuplicateResourceError(StorefrontError):
    """Raised when a uniqueness constraint cannot be satisfied."""

    code = "duplicate_resource"


class EmailAlreadyRegisteredError(DuplicateResourceError):
    code = "email_registered"

    def __init__(self, email: str) -> None:
        super().__init__(f"Email {email} is already registered")
        self.email = email


__all__ = [
    "AccountNotFoundError",
    "DuplicateResourceError",
    "EmailAlreadyRegisteredError",
    "InsufficientPointsError",
    "InsufficientStockError",
    "InvalidInputError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "OrderNotFoundError",
    "ProductNotFoundError",
    "RedemptionNotFoundError",
    "StorefrontError",
]

"""
Domain: error taxonomy for sale and stock operations.

Every failure a sale operation can report is a subclass of ``SaleError`` so the
HTTP layer can map them to status codes in one place. ``InsufficientStock`` is
a value, not an exception: the stock ledger returns it and the sale service
decides whether to raise ``InsufficientStockError`` with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True, slots=True)
class InsufficientStock:
    """
    Result of a conditional decrement that could not be satisfied.

    available: stock observed right after the failed decrement
    requested: units the caller tried to deduct
    """

    product_id: UUID
    available: int
    requested: int
    product_name: Optional[str] = None

    def describe(self) -> str:
        label = self.product_name or str(self.product_id)
        return (
            f"Insufficient stock for product {label}. "
            f"Available: {self.available}, Requested: {self.requested}"
        )


class SaleError(Exception):
    """Base class for failures surfaced by sale operations."""


class SaleValidationError(SaleError):
    """Raised when a request is malformed; nothing has been written yet."""

    def __init__(self, message: str, line_index: Optional[int] = None):
        self.line_index = line_index
        super().__init__(message)


class InsufficientStockError(SaleError):
    """Raised when a deduction for a sale cannot be satisfied."""

    def __init__(self, shortage: InsufficientStock, line_index: Optional[int] = None):
        self.shortage = shortage
        self.line_index = line_index
        super().__init__(shortage.describe())


class SaleNotFoundError(SaleError):
    """Raised when a referenced sale does not exist (or is not visible)."""

    def __init__(self, sale_id: UUID):
        self.sale_id = sale_id
        super().__init__(f"Sale not found: {sale_id}")


class ProductNotFoundError(SaleError):
    """Raised when a line item references a product that does not exist."""

    def __init__(self, product_id: UUID):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class SalePermissionError(SaleError):
    """Raised when the principal lacks the capability for the requested change."""


class SaleConflictError(SaleError):
    """Raised when a sale was modified concurrently between read and write."""

    def __init__(self, sale_id: UUID):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} was modified concurrently; reload and retry")


class StorageError(SaleError):
    """Raised when the persistence layer fails (network, API or SQL error)."""


class PartialCommitWarning(UserWarning):
    """
    Stock movements remain committed for an operation that did not finish.

    Logged rather than raised so stock can be reconciled manually.
    """


__all__ = [
    "InsufficientStock",
    "SaleError",
    "SaleValidationError",
    "InsufficientStockError",
    "SaleNotFoundError",
    "ProductNotFoundError",
    "SalePermissionError",
    "SaleConflictError",
    "StorageError",
    "PartialCommitWarning",
]

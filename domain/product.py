"""
Domain: Product stock view.

Only ``stock`` matters to the consistency engine; the remaining fields are
descriptive and carried through unchanged. Products are created and edited by
the catalogue, never by sale operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Product:
    """
    Immutable snapshot of a product as read from the store.

    Invariant: stock is never negative.
    """

    product_id: UUID
    name: str
    stock: int
    brand: Optional[str] = None
    category: Optional[str] = None
    model_no: Optional[str] = None
    min_sale_rate: Optional[Decimal] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.stock < 0:
            raise ValueError(f"Product {self.product_id} stock cannot be negative (got {self.stock})")
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    def has_stock_for(self, quantity: int) -> bool:
        """True if ``quantity`` units could be deducted right now."""
        return self.stock >= quantity

"""
Repository interfaces consumed by the sale services.

The services depend on these protocols rather than on Supabase directly, so
the stock logic can run against any store that offers per-document atomic
conditional updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Protocol, Tuple
from uuid import UUID

from domain.product import Product
from domain.sale import Sale, SaleStatus


@dataclass(frozen=True, slots=True)
class SaleQueryFilters:
    """
    Filters for listing sales. None means "don't filter on this field".

    end_date is inclusive (the caller passes the end of the day).
    """

    sold_by: Optional[UUID] = None
    product_id: Optional[UUID] = None
    status: Optional[SaleStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProductRepository(Protocol):
    def get_product(self, product_id: UUID) -> Optional[Product]:
        ...

    def conditional_decrement(self, product_id: UUID, amount: int) -> Optional[Product]:
        """Atomically subtract ``amount`` if stock >= amount; None if nothing was updated."""
        ...

    def increment(self, product_id: UUID, amount: int) -> Optional[Product]:
        """Atomically add ``amount``; None if the product does not exist."""
        ...


class SaleRepository(Protocol):
    def insert(self, sale: Sale) -> Sale:
        ...

    def get(self, sale_id: UUID) -> Optional[Sale]:
        ...

    def list(self, filters: SaleQueryFilters, *, offset: int, limit: int) -> Tuple[List[Sale], int]:
        """Return (page of sales ordered by sale_date desc, total matching count)."""
        ...

    def update(self, sale: Sale, *, expected_version: int) -> Optional[Sale]:
        """Write ``sale`` if the stored version still equals ``expected_version``; None otherwise."""
        ...

    def delete(self, sale_id: UUID, *, expected_version: int) -> bool:
        """Delete if the stored version still equals ``expected_version``."""
        ...


class AuditRepository(Protocol):
    def record(
        self,
        *,
        user_id: UUID,
        action: str,
        resource: str,
        resource_id: Optional[UUID],
        metadata: Mapping[str, Any],
    ) -> None:
        ...


__all__ = [
    "SaleQueryFilters",
    "ProductRepository",
    "SaleRepository",
    "AuditRepository",
]

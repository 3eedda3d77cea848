"""
Domain: Sale records.

A sale holds one or more priced line items and a status. Only a ``completed``
sale holds a stock reservation: its line-item quantities are currently deducted
from product stock. ``pending`` and ``cancelled`` sales hold none.

This module contains only pure domain entities: no I/O, no database.
All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .time import require_utc_timestamp


class SaleStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def holds_stock(self) -> bool:
        """Only completed sales have an outstanding stock deduction."""
        return self is SaleStatus.COMPLETED


DEFAULT_SALE_STATUS = SaleStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class LineItem:
    """One priced product/quantity entry of a sale."""

    product_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("quantity must be greater than 0")
        if self.unit_price < 0:
            raise ValueError("unit_price must be non-negative")
        if self.subtotal != self.quantity * self.unit_price:
            raise ValueError("subtotal must equal quantity * unit_price")


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable snapshot of a sale.

    Mutations return new instances via ``replace``; ``version`` is bumped by
    the repository on every successful write and guards conditional updates.
    """

    sale_id: UUID
    line_items: Tuple[LineItem, ...]
    total_amount: Decimal
    status: SaleStatus
    sold_by: UUID
    sale_date: datetime
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self) -> None:
        if not self.line_items:
            raise ValueError("A sale requires at least one line item")
        if self.total_amount != sum((item.subtotal for item in self.line_items), Decimal("0")):
            raise ValueError("total_amount must equal the sum of line-item subtotals")
        require_utc_timestamp("sale_date", self.sale_date)
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def is_completed(self) -> bool:
        return self.status.holds_stock

    def with_changes(self, **changes) -> "Sale":
        return replace(self, **changes)

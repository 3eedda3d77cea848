"""
Line-item calculator (pure).

Turns raw (product, quantity, unit price) inputs into priced line items and a
sale total. No I/O, no side effects: the same inputs always produce the same
result, so it is safe to call repeatedly (e.g. once for validation and again
when building the persisted record).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, Sequence, Tuple
from uuid import UUID

from .errors import SaleValidationError
from .sale import LineItem

_CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class LineItemInput:
    """
    Unvalidated line item as requested by the caller.

    Fields are optional so the calculator, not the transport, decides what is
    malformed and can name the offending line.
    """

    product_id: Optional[UUID]
    quantity: Optional[int]
    unit_price: Optional[Decimal]


@dataclass(frozen=True, slots=True)
class PricedLineItems:
    items: Tuple[LineItem, ...]
    total: Decimal


def _validate_line(index: int, line: LineItemInput) -> Tuple[UUID, int, Decimal]:
    if line.product_id is None:
        raise SaleValidationError(f"Line {index}: productId is required", line_index=index)

    quantity = line.quantity
    # bool is an int subclass; True must not be accepted as a quantity of 1
    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int):
        raise SaleValidationError(f"Line {index}: quantity must be a whole number", line_index=index)
    if quantity <= 0:
        raise SaleValidationError(f"Line {index}: quantity must be greater than 0", line_index=index)

    if line.unit_price is None:
        raise SaleValidationError(f"Line {index}: price is required", line_index=index)
    try:
        unit_price = Decimal(line.unit_price)
    except (InvalidOperation, TypeError, ValueError):
        raise SaleValidationError(f"Line {index}: price must be a number", line_index=index) from None
    if not unit_price.is_finite() or unit_price < 0:
        raise SaleValidationError(f"Line {index}: price must be non-negative", line_index=index)
    # sales.total_amount is numeric(14, 2); finer prices would not round-trip
    if unit_price != unit_price.quantize(_CENT):
        raise SaleValidationError(f"Line {index}: price must have at most 2 decimal places", line_index=index)

    return line.product_id, quantity, unit_price


def price_line_items(lines: Sequence[LineItemInput]) -> PricedLineItems:
    """
    Validate and price a list of line items.

    Returns:
        PricedLineItems with subtotal = quantity * unit_price per line and
        total = sum of subtotals.

    Raises:
        SaleValidationError: if the list is empty or a line is malformed; the
        error names the zero-based index of the first bad line.

    Example:
        priced = price_line_items([
            LineItemInput(product_id=a, quantity=2, unit_price=Decimal("10")),
            LineItemInput(product_id=b, quantity=3, unit_price=Decimal("5")),
        ])
        # priced.total == Decimal("35")
    """
    if not lines:
        raise SaleValidationError("At least one product is required")

    items = []
    total = Decimal("0")
    for index, line in enumerate(lines):
        product_id, quantity, unit_price = _validate_line(index, line)
        subtotal = quantity * unit_price
        items.append(LineItem(product_id=product_id, quantity=quantity, unit_price=unit_price, subtotal=subtotal))
        total += subtotal

    return PricedLineItems(items=tuple(items), total=total)


def reserved_quantities(items: Iterable[LineItem]) -> Dict[UUID, int]:
    """
    Aggregate quantity per product, in first-seen order.

    A sale listing the same product on two lines reserves the sum of both.
    """
    totals: Dict[UUID, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def first_line_index(items: Sequence[LineItem], product_id: UUID) -> Optional[int]:
    for index, item in enumerate(items):
        if item.product_id == product_id:
            return index
    return None


__all__ = [
    "LineItemInput",
    "PricedLineItems",
    "price_line_items",
    "reserved_quantities",
    "first_line_index",
]

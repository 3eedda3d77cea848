"""
Line-item reconciler (pure).

When an update replaces a sale's line items, the stock already reserved by the
old items and the stock the new items need are netted per product, so each
unit is deducted or restored exactly once.

Reservation rules:
- Old items count as reserved only if the sale was completed AND the status
  step has not already restored them. A pending or cancelled sale never held a
  deduction, so its prior items contribute zero.
- New items count as reserved only if the sale will be completed.

net_delta(p) = new_reserved(p) - old_reserved(p)
  > 0  deduct net_delta more units (checked)
  < 0  restore |net_delta| units
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple
from uuid import UUID

from .line_items import first_line_index, reserved_quantities
from .sale import LineItem
from .stock import StockMovement


@dataclass(frozen=True, slots=True)
class ReconciliationPlan:
    movements: Tuple[StockMovement, ...]
    net_deltas: Dict[UUID, int]

    @property
    def deductions(self) -> List[StockMovement]:
        return [m for m in self.movements if m.is_deduction]

    @property
    def restorations(self) -> List[StockMovement]:
        return [m for m in self.movements if m.is_restoration]

    @property
    def is_noop(self) -> bool:
        return not self.movements


def reconcile_line_items(
    old_items: Sequence[LineItem],
    new_items: Sequence[LineItem],
    *,
    was_completed: bool,
    will_be_completed: bool,
    status_restored: bool = False,
) -> ReconciliationPlan:
    """
    Compute the stock movements needed to replace ``old_items`` with ``new_items``.

    Args:
        old_items: line items currently stored on the sale
        new_items: line items requested by the update (already priced)
        was_completed: the sale's status before the update was completed
        will_be_completed: the sale's status after the update is completed
        status_restored: the status step already restored ``old_items``
            (completed -> not completed); they must not be restored again

    Returns:
        ReconciliationPlan with one movement per product whose reservation
        changes. Products in ``new_items`` come first, in line order, followed
        by products that only appear in ``old_items``.
    """
    old_reserved = reserved_quantities(old_items) if was_completed and not status_restored else {}
    new_reserved = reserved_quantities(new_items) if will_be_completed else {}

    ordered_products: List[UUID] = list(reserved_quantities(new_items))
    ordered_products += [p for p in reserved_quantities(old_items) if p not in ordered_products]

    movements: List[StockMovement] = []
    net_deltas: Dict[UUID, int] = {}
    for product_id in ordered_products:
        net_delta = new_reserved.get(product_id, 0) - old_reserved.get(product_id, 0)
        net_deltas[product_id] = net_delta
        if net_delta == 0:
            continue

        line_index = first_line_index(new_items, product_id)
        if line_index is None:
            line_index = first_line_index(old_items, product_id)

        # stock moves opposite to the reservation
        movements.append(StockMovement(product_id=product_id, delta=-net_delta, line_index=line_index))

    return ReconciliationPlan(movements=tuple(movements), net_deltas=net_deltas)


__all__ = ["ReconciliationPlan", "reconcile_line_items"]

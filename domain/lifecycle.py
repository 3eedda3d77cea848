"""
Sale lifecycle state machine (pure).

States: pending, completed, cancelled. Any state may move to any other;
deletion is a separate operation. Only entering or leaving ``completed`` moves
stock:

    (none)            -> completed          deduct every line item
    (none)            -> pending/cancelled  no effect
    pending/cancelled -> completed          deduct every line item
    completed         -> pending/cancelled  restore every line item
    completed         -> completed          no effect
    pending          <-> cancelled          no effect
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

from .line_items import first_line_index, reserved_quantities
from .sale import LineItem, SaleStatus
from .stock import StockMovement


class StockEffect(str, Enum):
    NONE = "none"
    DEDUCT = "deduct"
    RESTORE = "restore"


def status_transition_effect(old_status: Optional[SaleStatus], new_status: SaleStatus) -> StockEffect:
    """
    Stock effect of moving a sale from ``old_status`` to ``new_status``.

    ``old_status`` is None for a sale being created.
    """
    was_completed = old_status is not None and old_status.holds_stock
    will_be_completed = new_status.holds_stock

    if will_be_completed and not was_completed:
        return StockEffect.DEDUCT
    if was_completed and not will_be_completed:
        return StockEffect.RESTORE
    return StockEffect.NONE


def movements_for_effect(effect: StockEffect, items: Sequence[LineItem]) -> List[StockMovement]:
    """Per-product movements that apply ``effect`` to every line of ``items``."""

    if effect is StockEffect.NONE:
        return []

    sign = -1 if effect is StockEffect.DEDUCT else 1
    return [
        StockMovement(
            product_id=product_id,
            delta=sign * quantity,
            line_index=first_line_index(items, product_id),
        )
        for product_id, quantity in reserved_quantities(items).items()
    ]


__all__ = [
    "StockEffect",
    "status_transition_effect",
    "movements_for_effect",
]

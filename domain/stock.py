"""
Domain: stock movements.

A movement is a signed change to one product's stock. Negative deltas are
deductions (checked against available stock); positive deltas are
restorations of a previous deduction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional
from uuid import UUID


@dataclass(frozen=True, slots=True)
class StockMovement:
    product_id: UUID
    delta: int
    line_index: Optional[int] = None  # first line of the sale that references the product

    @property
    def is_deduction(self) -> bool:
        return self.delta < 0

    @property
    def is_restoration(self) -> bool:
        return self.delta > 0

    @property
    def quantity(self) -> int:
        return abs(self.delta)

    def inverse(self) -> "StockMovement":
        return StockMovement(product_id=self.product_id, delta=-self.delta, line_index=self.line_index)


def deductions_first(movements: Iterable[StockMovement]) -> List[StockMovement]:
    """
    Order movements so every deduction runs before any restoration.

    Deductions are the only movements that can fail; running them first keeps
    the set of writes to undo on failure as small as possible. Relative order
    within each group is preserved.
    """
    items = [m for m in movements if m.delta != 0]
    return [m for m in items if m.is_deduction] + [m for m in items if m.is_restoration]

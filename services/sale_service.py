"""
Sale service: create, update, delete and query sales while keeping product
stock consistent.

Handles:
- Status lifecycle (only ``completed`` sales hold stock)
- Line-item replacement with per-product net deltas
- Reversal of stock before a completed sale is deleted
- Compensation of committed stock movements when a later step fails
- Audit trail of every successful mutation

Invariant kept after every successful call, for every product P:

    P.stock == P.initial_stock - sum(quantity of P in completed sales)

Role checks for who may touch which sale live at the HTTP seam; this service
only consults the injected ``can_edit_line_items`` capability.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from domain.errors import (
    InsufficientStockError,
    SaleConflictError,
    SaleNotFoundError,
    SalePermissionError,
    SaleValidationError,
)
from domain.lifecycle import StockEffect, movements_for_effect, status_transition_effect
from domain.line_items import LineItemInput, price_line_items, reserved_quantities
from domain.principal import LineItemEditCheck, Principal, can_edit_sale_line_items
from domain.reconciler import reconcile_line_items
from domain.sale import DEFAULT_SALE_STATUS, Sale, SaleStatus
from domain.stock import StockMovement
from domain.time import require_utc_timestamp, utc_now
from repositories.base import AuditRepository, SaleQueryFilters, SaleRepository
from services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 50


@dataclass(frozen=True, slots=True)
class CreateSaleRequest:
    """
    Request to record a new sale.

    sold_by defaults to the acting principal; status defaults to completed.
    """
    line_items: Sequence[LineItemInput]
    sold_by: Optional[UUID] = None
    status: SaleStatus = DEFAULT_SALE_STATUS
    sale_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class UpdateSaleRequest:
    """
    Partial update of an existing sale. None means "leave unchanged".
    """
    sale_id: UUID
    line_items: Optional[Sequence[LineItemInput]] = None
    status: Optional[SaleStatus] = None
    sale_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class SalePage:
    sales: List[Sale]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class SaleService:
    def __init__(
        self,
        sales: SaleRepository,
        ledger: StockLedger,
        *,
        audit: Optional[AuditRepository] = None,
        can_edit_line_items: LineItemEditCheck = can_edit_sale_line_items,
    ):
        self._sales = sales
        self._ledger = ledger
        self._audit = audit
        self._can_edit_line_items = can_edit_line_items

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_sale(self, sale_id: UUID) -> Sale:
        sale = self._sales.get(sale_id)
        if sale is None:
            raise SaleNotFoundError(sale_id)
        return sale

    def list_sales(self, filters: SaleQueryFilters, *, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> SalePage:
        if page < 1:
            raise SaleValidationError("page must be at least 1")
        if limit < 1:
            raise SaleValidationError("limit must be at least 1")

        sales, total = self._sales.list(filters, offset=(page - 1) * limit, limit=limit)
        return SalePage(sales=sales, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_sale(self, request: CreateSaleRequest, actor: Principal) -> Sale:
        """
        Record a new sale.

        A completed sale deducts stock for every line first; if any product is
        short, nothing is persisted and the error names that product and line.

        Raises:
            SaleValidationError: empty or malformed line items
            ProductNotFoundError: a line references an unknown product
            InsufficientStockError: a completed sale cannot be covered
        """
        priced = price_line_items(request.line_items)
        if request.sale_date is not None:
            require_utc_timestamp("sale_date", request.sale_date)

        sale_id = uuid4()
        context = f"create sale {sale_id}"
        now = utc_now()

        effect = status_transition_effect(None, request.status)
        movements = movements_for_effect(effect, priced.items)
        if movements:
            self._prevalidate(movements)
        else:
            # No stock moves, but every product must still exist.
            for product_id in reserved_quantities(priced.items):
                self._ledger.get_product(product_id)

        applied = self._ledger.apply(movements, context=context)

        sale = Sale(
            sale_id=sale_id,
            line_items=priced.items,
            total_amount=priced.total,
            status=request.status,
            sold_by=request.sold_by or actor.user_id,
            sale_date=request.sale_date or now,
            created_by=actor.user_id,
            created_at=now,
        )

        try:
            stored = self._sales.insert(sale)
        except Exception:
            self._ledger.revert(applied, context=context)
            raise

        logger.info(
            "Created sale %s (%s, %d line items, total %s)",
            stored.sale_id, stored.status.value, len(stored.line_items), stored.total_amount,
        )
        self._record_audit(actor, "create", stored.sale_id, {
            "status": stored.status.value,
            "total_amount": str(stored.total_amount),
            "line_items": len(stored.line_items),
        })
        return stored

    def update_sale(self, request: UpdateSaleRequest, actor: Principal) -> Sale:
        """
        Change a sale's status and/or replace its line items.

        Process:
        1. Status step: leaving ``completed`` restores the current items.
           Entering ``completed`` deducts the current items, unless the items
           are being replaced, in which case the reconciler deducts the new ones.
        2. Reconciler: nets old vs new reservations per product.
        3. Every deduction is dry-run checked before any write.
        4. Deductions are applied, then the sale is written conditionally on
           the version read in (1). A lost race reverts the deductions.
        5. Restorations run only after the sale write won, so two requests
           racing on one sale can never both return its units to stock.

        Raises:
            SaleNotFoundError, SalePermissionError, SaleValidationError,
            InsufficientStockError, ProductNotFoundError, SaleConflictError
        """
        sale = self.get_sale(request.sale_id)

        replacing = request.line_items is not None
        if replacing and not self._can_edit_line_items(actor):
            raise SalePermissionError("Only admins and managers can update products")

        priced = price_line_items(request.line_items) if replacing else None
        if request.sale_date is not None:
            require_utc_timestamp("sale_date", request.sale_date)

        old_status = sale.status
        new_status = request.status if request.status is not None else old_status
        effect = status_transition_effect(old_status, new_status)

        movements: List[StockMovement] = []
        if priced is None:
            movements += movements_for_effect(effect, sale.line_items)
        else:
            status_restored = effect is StockEffect.RESTORE
            if status_restored:
                movements += movements_for_effect(StockEffect.RESTORE, sale.line_items)
            plan = reconcile_line_items(
                sale.line_items,
                priced.items,
                was_completed=old_status.holds_stock,
                will_be_completed=new_status.holds_stock,
                status_restored=status_restored,
            )
            movements += plan.movements

        self._prevalidate(movements)
        deductions = [m for m in movements if m.is_deduction]
        restorations = [m for m in movements if m.is_restoration]

        context = f"update sale {sale.sale_id}"
        applied = self._ledger.apply(deductions, context=context)

        changes: Dict[str, Any] = {"status": new_status, "updated_by": actor.user_id}
        if priced is not None:
            changes["line_items"] = priced.items
            changes["total_amount"] = priced.total
        if request.sale_date is not None:
            changes["sale_date"] = request.sale_date
        updated = sale.with_changes(**changes)

        try:
            stored = self._sales.update(updated, expected_version=sale.version)
        except Exception:
            self._ledger.revert(applied, context=context)
            raise
        if stored is None:
            self._ledger.revert(applied, context=context)
            raise SaleConflictError(sale.sale_id)

        restored = self._ledger.restore(restorations, context=context)

        if old_status is not new_status:
            logger.info("Sale %s status %s -> %s", stored.sale_id, old_status.value, new_status.value)
        metadata: Dict[str, Any] = {"stock_movements": len(applied) + len(restored)}
        if old_status is not new_status:
            metadata["status"] = {"from": old_status.value, "to": new_status.value}
        if priced is not None:
            metadata["total_amount"] = str(stored.total_amount)
        self._record_audit(actor, "update", stored.sale_id, metadata)
        return stored

    def delete_sale(self, sale_id: UUID, actor: Principal) -> None:
        """
        Delete a sale, returning its units to stock if it was completed.

        Every product to restore must still exist, otherwise nothing happens.
        The version-checked delete goes first so only one request can return
        the units; if a restoration then fails, the ones already made are
        undone and the sale is put back.
        """
        sale = self.get_sale(sale_id)
        context = f"delete sale {sale_id}"

        effect = StockEffect.RESTORE if sale.is_completed else StockEffect.NONE
        movements = movements_for_effect(effect, sale.line_items)
        for movement in movements:
            self._ledger.get_product(movement.product_id)

        if not self._sales.delete(sale_id, expected_version=sale.version):
            raise SaleConflictError(sale_id)

        try:
            applied = self._ledger.apply(movements, context=context)
        except Exception:
            self._reinstate(sale, context=context)
            raise

        logger.info("Deleted sale %s (%s, restored %d products)", sale_id, sale.status.value, len(applied))
        self._record_audit(actor, "delete", sale_id, {
            "status": sale.status.value,
            "total_amount": str(sale.total_amount),
        })

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prevalidate(self, movements: Sequence[StockMovement]) -> None:
        """Dry-run every deduction; raise before anything is written."""
        shortage = self._ledger.find_shortage(movements)
        if shortage is not None:
            movement, insufficient = shortage
            raise InsufficientStockError(insufficient, line_index=movement.line_index)

    def _reinstate(self, sale: Sale, *, context: str) -> None:
        """Put back a deleted sale whose units could not be returned to stock."""
        try:
            self._sales.insert(sale.with_changes(version=sale.version + 1))
        except Exception:
            logger.exception("Could not reinstate sale %s after failed %s", sale.sale_id, context)
        else:
            logger.warning("Reinstated sale %s after failed %s", sale.sale_id, context)

    def _record_audit(self, actor: Principal, action: str, sale_id: UUID, metadata: Dict[str, Any]) -> None:
        if self._audit is None:
            return
        try:
            self._audit.record(
                user_id=actor.user_id,
                action=action,
                resource="sale",
                resource_id=sale_id,
                metadata=metadata,
            )
        except Exception:
            # The sale change is already committed; a lost audit row must not undo it.
            logger.exception("Failed to record audit event %s for sale %s", action, sale_id)


__all__ = [
    "CreateSaleRequest",
    "UpdateSaleRequest",
    "SalePage",
    "SaleService",
    "DEFAULT_PAGE_LIMIT",
]

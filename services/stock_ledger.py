"""
Stock ledger service.

The only code allowed to change ``Product.stock``. Every change is one atomic
store operation against one product:

- deduction: conditional decrement ("subtract n if stock >= n"), which can fail
  with InsufficientStock
- restoration: unconditional increment, which reverses an earlier deduction

Multi-product requests are NOT atomic as a unit; the store offers no
cross-document transaction. ``apply`` runs movements one at a time and, when
one fails, undoes the ones it already committed (compensation). If
compensation is disabled, or an undo write itself fails, the movements that
stay committed are logged as a PartialCommitWarning so stock can be
reconciled by hand.

Restorations that follow an already-committed sale write go through
``restore``, which never raises: the sale change stands and anything it could
not return to stock is logged the same way.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple, Union
from uuid import UUID

from domain.errors import (
    InsufficientStock,
    InsufficientStockError,
    PartialCommitWarning,
    ProductNotFoundError,
)
from domain.product import Product
from domain.stock import StockMovement, deductions_first
from repositories.base import ProductRepository

logger = logging.getLogger(__name__)


def _describe(movements: Sequence[StockMovement]) -> str:
    return ", ".join(f"{m.product_id}:{m.delta:+d}" for m in movements)


class StockLedger:
    def __init__(self, products: ProductRepository, *, compensate_on_failure: bool = True):
        self._products = products
        self.compensate_on_failure = compensate_on_failure

    def get_product(self, product_id: UUID) -> Product:
        product = self._products.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def adjust_stock(self, product_id: UUID, delta: int) -> Union[Product, InsufficientStock]:
        """
        Atomically change one product's stock by ``delta``.

        Returns:
            The updated Product, or InsufficientStock when a deduction would
            drive stock negative (nothing is written in that case).

        Raises:
            ProductNotFoundError: the product does not exist
            StorageError: the store could not be reached
        """
        if delta == 0:
            return self.get_product(product_id)

        if delta > 0:
            product = self._products.increment(product_id, delta)
            if product is None:
                raise ProductNotFoundError(product_id)
            return product

        requested = -delta
        product = self._products.conditional_decrement(product_id, requested)
        if product is not None:
            return product

        # Nothing matched: either the product is gone or stock was short.
        current = self.get_product(product_id)
        return InsufficientStock(
            product_id=product_id,
            available=current.stock,
            requested=requested,
            product_name=current.name,
        )

    def find_shortage(self, movements: Sequence[StockMovement]) -> Optional[Tuple[StockMovement, InsufficientStock]]:
        """
        Read-only dry run: the first deduction that current stock cannot cover.

        Also raises ProductNotFoundError for any product a deduction refers to
        that does not exist. Restorations are not looked at. Passing this check
        does not reserve anything; the conditional decrement in ``apply``
        remains the real guard.
        """
        for movement in movements:
            if not movement.is_deduction:
                continue
            product = self.get_product(movement.product_id)
            if not product.has_stock_for(movement.quantity):
                return movement, InsufficientStock(
                    product_id=movement.product_id,
                    available=product.stock,
                    requested=movement.quantity,
                    product_name=product.name,
                )
        return None

    def apply(self, movements: Sequence[StockMovement], *, context: str) -> List[StockMovement]:
        """
        Apply ``movements`` (deductions first, then restorations).

        Args:
            movements: per-product stock changes for one request
            context: short description for log lines, e.g. "create sale <id>"

        Returns:
            The movements that were committed, in the order they ran.

        Raises:
            InsufficientStockError: a deduction could not be satisfied
            ProductNotFoundError, StorageError: a write failed
            In every case the movements already committed by this call are
            compensated first (when enabled).
        """
        applied: List[StockMovement] = []

        for movement in deductions_first(movements):
            try:
                result = self.adjust_stock(movement.product_id, movement.delta)
            except Exception:
                logger.warning("Stock movement %s failed during %s", _describe([movement]), context)
                self._abandon(applied, context=context)
                raise

            if isinstance(result, InsufficientStock):
                logger.warning("%s (%s)", result.describe(), context)
                self._abandon(applied, context=context)
                raise InsufficientStockError(result, line_index=movement.line_index)

            applied.append(movement)

        if applied:
            logger.info("Applied stock movements for %s: %s", context, _describe(applied))
        return applied

    def restore(self, movements: Sequence[StockMovement], *, context: str) -> List[StockMovement]:
        """
        Return units to stock for an operation whose sale write already committed.

        Never raises. A product that no longer exists is skipped; a write that
        fails is logged as a PartialCommitWarning. Returns the restorations
        that were applied.
        """
        applied: List[StockMovement] = []
        missed: List[StockMovement] = []
        for movement in movements:
            try:
                self.adjust_stock(movement.product_id, movement.delta)
            except ProductNotFoundError:
                logger.warning("Skipping restoration %s for %s: product no longer exists", _describe([movement]), context)
                continue
            except Exception:
                logger.exception("Could not restore stock %s for %s", _describe([movement]), context)
                missed.append(movement)
                continue
            applied.append(movement)

        if missed:
            logger.warning(
                "%s: %s committed without stock restorations: %s",
                PartialCommitWarning.__name__,
                context,
                _describe(missed),
            )
        if applied:
            logger.info("Restored stock for %s: %s", context, _describe(applied))
        return applied

    def revert(self, applied: Sequence[StockMovement], *, context: str) -> List[StockMovement]:
        """
        Undo committed movements, newest first.

        Never raises: movements that cannot be undone are logged as a
        PartialCommitWarning and returned.
        """
        stuck: List[StockMovement] = []
        for movement in reversed(applied):
            inverse = movement.inverse()
            try:
                result = self.adjust_stock(inverse.product_id, inverse.delta)
            except Exception:
                logger.exception("Could not undo stock movement %s for %s", _describe([movement]), context)
                stuck.append(movement)
                continue
            if isinstance(result, InsufficientStock):
                stuck.append(movement)

        if stuck:
            self._warn_partial_commit(stuck, context=context)
        else:
            logger.info("Reverted stock movements for %s: %s", context, _describe(applied))
        return stuck

    def _abandon(self, applied: Sequence[StockMovement], *, context: str) -> None:
        if not applied:
            return
        if self.compensate_on_failure:
            self.revert(applied, context=context)
        else:
            self._warn_partial_commit(applied, context=context)

    @staticmethod
    def _warn_partial_commit(movements: Sequence[StockMovement], *, context: str) -> None:
        logger.warning(
            "%s: stock movements remain committed for abandoned %s: %s",
            PartialCommitWarning.__name__,
            context,
            _describe(movements),
        )


__all__ = ["StockLedger"]

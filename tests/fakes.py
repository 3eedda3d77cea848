"""
In-memory repositories for tests.

They implement the protocols in ``repositories/base.py``. A single lock plays
the role of the database's row-level atomicity: the conditional decrement
checks and writes under it, just as the SQL function does in one statement.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple
from uuid import UUID, uuid4

from domain.errors import StorageError
from domain.product import Product
from domain.sale import Sale
from domain.time import utc_now
from repositories.base import SaleQueryFilters


class InMemoryProductRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: Dict[UUID, Product] = {}
        self.initial_stock: Dict[UUID, int] = {}
        self.fail_increment_for: Set[UUID] = set()
        self.fail_decrement_for: Set[UUID] = set()
        self.calls: List[Tuple[str, UUID, int]] = []

    def add(self, name: str, stock: int, product_id: Optional[UUID] = None) -> Product:
        product = Product(product_id=product_id or uuid4(), name=name, stock=stock)
        with self._lock:
            self._products[product.product_id] = product
            self.initial_stock[product.product_id] = stock
        return product

    def remove(self, product_id: UUID) -> None:
        with self._lock:
            del self._products[product_id]

    def stock(self, product_id: UUID) -> int:
        return self._products[product_id].stock

    def get_product(self, product_id: UUID) -> Optional[Product]:
        with self._lock:
            return self._products.get(product_id)

    def conditional_decrement(self, product_id: UUID, amount: int) -> Optional[Product]:
        if product_id in self.fail_decrement_for:
            raise StorageError(f"Failed to decrement product stock: simulated outage for {product_id}")
        with self._lock:
            self.calls.append(("decrement", product_id, amount))
            product = self._products.get(product_id)
            if product is None or product.stock < amount:
                return None
            updated = replace(product, stock=product.stock - amount)
            self._products[product_id] = updated
            return updated

    def increment(self, product_id: UUID, amount: int) -> Optional[Product]:
        if product_id in self.fail_increment_for:
            raise StorageError(f"Failed to increment product stock: simulated outage for {product_id}")
        with self._lock:
            self.calls.append(("increment", product_id, amount))
            product = self._products.get(product_id)
            if product is None:
                return None
            updated = replace(product, stock=product.stock + amount)
            self._products[product_id] = updated
            return updated


class InMemorySaleRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sales: Dict[UUID, Sale] = {}
        self.fail_insert = False
        self.bump_version_before_next_write = False
        # Called once, outside the lock, right before the next update or delete.
        self.before_next_write: Optional[Callable[[], None]] = None

    def all(self) -> List[Sale]:
        return list(self._sales.values())

    def _run_interleaved_request(self) -> None:
        hook, self.before_next_write = self.before_next_write, None
        if hook is not None:
            hook()

    def _simulate_concurrent_write(self, sale_id: UUID) -> None:
        if self.bump_version_before_next_write and sale_id in self._sales:
            self.bump_version_before_next_write = False
            current = self._sales[sale_id]
            self._sales[sale_id] = replace(current, version=current.version + 1)

    def insert(self, sale: Sale) -> Sale:
        if self.fail_insert:
            raise StorageError("Failed to record sale: simulated outage")
        now = utc_now()
        stored = replace(sale, created_at=sale.created_at or now, updated_at=now)
        with self._lock:
            self._sales[stored.sale_id] = stored
        return stored

    def get(self, sale_id: UUID) -> Optional[Sale]:
        with self._lock:
            return self._sales.get(sale_id)

    def list(self, filters: SaleQueryFilters, *, offset: int, limit: int) -> Tuple[List[Sale], int]:
        with self._lock:
            matches = [sale for sale in self._sales.values() if _matches(sale, filters)]
        matches.sort(key=lambda sale: sale.sale_date, reverse=True)
        return matches[offset:offset + limit], len(matches)

    def update(self, sale: Sale, *, expected_version: int) -> Optional[Sale]:
        self._run_interleaved_request()
        with self._lock:
            self._simulate_concurrent_write(sale.sale_id)
            current = self._sales.get(sale.sale_id)
            if current is None or current.version != expected_version:
                return None
            stored = replace(sale, updated_at=utc_now(), version=expected_version + 1)
            self._sales[sale.sale_id] = stored
            return stored

    def delete(self, sale_id: UUID, *, expected_version: int) -> bool:
        self._run_interleaved_request()
        with self._lock:
            self._simulate_concurrent_write(sale_id)
            current = self._sales.get(sale_id)
            if current is None or current.version != expected_version:
                return False
            del self._sales[sale_id]
            return True


def _matches(sale: Sale, filters: SaleQueryFilters) -> bool:
    if filters.sold_by is not None and sale.sold_by != filters.sold_by:
        return False
    if filters.status is not None and sale.status is not filters.status:
        return False
    if filters.product_id is not None and all(i.product_id != filters.product_id for i in sale.line_items):
        return False
    if filters.start_date is not None and sale.sale_date < filters.start_date:
        return False
    if filters.end_date is not None and sale.sale_date > filters.end_date:
        return False
    return True


class InMemoryAuditRepository:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.fail = False

    def record(
        self,
        *,
        user_id: UUID,
        action: str,
        resource: str,
        resource_id: Optional[UUID],
        metadata: Mapping[str, Any],
    ) -> None:
        if self.fail:
            raise StorageError("Failed to record audit event: simulated outage")
        self.events.append({
            "user_id": user_id,
            "action": action,
            "resource": resource,
            "resource_id": resource_id,
            "metadata": dict(metadata),
        })

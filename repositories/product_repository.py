"""
Product repository (persistence).

This module provides *only* the product reads and the two stock writes the
sale engine needs. Stock is never written with a plain UPDATE from Python:
both writes go through PostgreSQL functions (see sql/schema.sql) so the
check-and-write happens in a single statement on the server.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.product import Product
from domain.time import parse_utc_datetime
from repositories.client import execute, get_supabase

# Supabase table and RPC names.
# Keep these aligned with sql/schema.sql.
_PRODUCTS_TABLE: str = "products"
_DECREMENT_RPC: str = "decrement_product_stock"
_INCREMENT_RPC: str = "increment_product_stock"


def _row_to_product(row: Mapping[str, Any]) -> Product:
    """Convert a Supabase row into a Product."""

    min_sale_rate = row.get("min_sale_rate")
    updated_at = row.get("updated_at_utc")
    return Product(
        product_id=UUID(str(row["product_id"])),
        name=str(row["name"]),
        stock=int(row["stock"]),
        brand=row.get("brand"),
        category=row.get("category"),
        model_no=row.get("model_no"),
        min_sale_rate=Decimal(str(min_sale_rate)) if min_sale_rate is not None else None,
        updated_at=parse_utc_datetime(updated_at) if updated_at else None,
    )


class SupabaseProductRepository:
    """Products stored in Supabase; stock writes are atomic server-side functions."""

    def __init__(self, client: Any = None):
        self._client = client if client is not None else get_supabase()

    def get_product(self, product_id: UUID) -> Optional[Product]:
        rows = execute(
            self._client.table(_PRODUCTS_TABLE)
            .select("*")
            .eq("product_id", str(product_id))
            .limit(1),
            action="fetch product",
        )
        if not rows:
            return None
        return _row_to_product(rows[0])

    def conditional_decrement(self, product_id: UUID, amount: int) -> Optional[Product]:
        """
        Subtract ``amount`` from stock only if stock >= amount.

        The function runs ``UPDATE ... SET stock = stock - amount WHERE
        product_id = $1 AND stock >= amount RETURNING *``, so two concurrent
        calls competing for the last units cannot both succeed.

        Returns:
            The updated Product, or None if no row matched (missing product or
            insufficient stock; the caller tells them apart with get_product).
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        rows = execute(
            self._client.rpc(_DECREMENT_RPC, {"p_product_id": str(product_id), "p_amount": amount}),
            action="decrement product stock",
        )
        if not rows:
            return None
        return _row_to_product(rows[0])

    def increment(self, product_id: UUID, amount: int) -> Optional[Product]:
        """Add ``amount`` to stock unconditionally. None if the product does not exist."""
        if amount <= 0:
            raise ValueError("amount must be positive")

        rows = execute(
            self._client.rpc(_INCREMENT_RPC, {"p_product_id": str(product_id), "p_amount": amount}),
            action="increment product stock",
        )
        if not rows:
            return None
        return _row_to_product(rows[0])


__all__ = ["SupabaseProductRepository"]

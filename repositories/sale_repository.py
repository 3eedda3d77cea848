"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain entity.
It does not move stock and does not decide status transitions; it stores and
fetches sale documents and enforces the version check on writes.

Line items are stored as a JSON array on the sale row. ``product_ids`` is a
denormalized uuid[] column used to filter sales by product.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from domain.sale import LineItem, Sale, SaleStatus
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.base import SaleQueryFilters
from repositories.client import execute, get_supabase, run

# Supabase table name for sale records.
# Keep this aligned with sql/schema.sql.
_SALES_TABLE: str = "sales"


def _line_item_to_json(item: LineItem) -> Dict[str, Any]:
    return {
        "product_id": str(item.product_id),
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "subtotal": str(item.subtotal),
    }


def _line_item_from_json(raw: Mapping[str, Any]) -> LineItem:
    return LineItem(
        product_id=UUID(str(raw["product_id"])),
        quantity=int(raw["quantity"]),
        unit_price=Decimal(str(raw["unit_price"])),
        subtotal=Decimal(str(raw["subtotal"])),
    )


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    return Sale(
        sale_id=UUID(str(row["sale_id"])),
        line_items=tuple(_line_item_from_json(raw) for raw in row["line_items"]),
        total_amount=Decimal(str(row["total_amount"])),
        status=SaleStatus(str(row["status"])),
        sold_by=UUID(str(row["sold_by"])),
        sale_date=parse_utc_datetime(row["sale_date_utc"]),
        created_by=_optional_uuid(row.get("created_by")),
        updated_by=_optional_uuid(row.get("updated_by")),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
        updated_at=parse_utc_datetime(row["updated_at_utc"]) if row.get("updated_at_utc") else None,
        version=int(row.get("version", 1)),
    )


def _sale_to_payload(sale: Sale) -> Dict[str, Any]:
    product_ids: List[str] = []
    for item in sale.line_items:
        if str(item.product_id) not in product_ids:
            product_ids.append(str(item.product_id))

    return {
        "sale_id": str(sale.sale_id),
        "line_items": [_line_item_to_json(item) for item in sale.line_items],
        "product_ids": product_ids,
        "total_amount": str(sale.total_amount),
        "status": sale.status.value,
        "sold_by": str(sale.sold_by),
        "sale_date_utc": to_iso_utc(sale.sale_date, name="sale_date"),
        "created_by": str(sale.created_by) if sale.created_by else None,
        "updated_by": str(sale.updated_by) if sale.updated_by else None,
        "created_at_utc": to_iso_utc(sale.created_at, name="created_at") if sale.created_at else None,
        "updated_at_utc": to_iso_utc(sale.updated_at, name="updated_at") if sale.updated_at else None,
        "version": sale.version,
    }


class SupabaseSaleRepository:
    """Sale documents stored in the Supabase ``sales`` table."""

    def __init__(self, client: Any = None):
        self._client = client if client is not None else get_supabase()

    def insert(self, sale: Sale) -> Sale:
        """
        Insert a new sale.

        created_at/updated_at default to now. The version is stored as given:
        1 for a new sale, higher for a deleted sale being put back.
        """
        now = utc_now()
        stored = sale.with_changes(
            created_at=sale.created_at or now,
            updated_at=now,
        )

        rows = execute(
            self._client.table(_SALES_TABLE).insert(_sale_to_payload(stored)),
            action="record sale",
        )
        return _row_to_sale(rows[0]) if rows else stored

    def get(self, sale_id: UUID) -> Optional[Sale]:
        rows = execute(
            self._client.table(_SALES_TABLE)
            .select("*")
            .eq("sale_id", str(sale_id))
            .limit(1),
            action="get sale",
        )
        if not rows:
            return None
        return _row_to_sale(rows[0])

    def list(self, filters: SaleQueryFilters, *, offset: int, limit: int) -> Tuple[List[Sale], int]:
        """
        Retrieve a page of sales ordered by sale date (newest first).

        Returns:
            (sales, total) where total counts every matching row.
        """
        query = self._client.table(_SALES_TABLE).select("*", count="exact")

        if filters.sold_by is not None:
            query = query.eq("sold_by", str(filters.sold_by))
        if filters.status is not None:
            query = query.eq("status", filters.status.value)
        if filters.product_id is not None:
            query = query.contains("product_ids", [str(filters.product_id)])
        if filters.start_date is not None:
            query = query.gte("sale_date_utc", to_iso_utc(filters.start_date, name="start_date"))
        if filters.end_date is not None:
            query = query.lte("sale_date_utc", to_iso_utc(filters.end_date, name="end_date"))

        query = query.order("sale_date_utc", desc=True).range(offset, offset + limit - 1)

        response = run(query, action="list sales")
        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return [_row_to_sale(row) for row in rows], int(total if total is not None else len(rows))

    def update(self, sale: Sale, *, expected_version: int) -> Optional[Sale]:
        """
        Overwrite a sale if nobody else wrote it since ``expected_version`` was read.

        Returns:
            The stored Sale (version incremented), or None if the row is gone or
            its version moved on.
        """
        stored = sale.with_changes(updated_at=utc_now(), version=expected_version + 1)
        payload = _sale_to_payload(stored)
        del payload["sale_id"]
        del payload["created_at_utc"]

        rows = execute(
            self._client.table(_SALES_TABLE)
            .update(payload)
            .eq("sale_id", str(sale.sale_id))
            .eq("version", expected_version),
            action="update sale",
        )
        if not rows:
            return None
        return _row_to_sale(rows[0])

    def delete(self, sale_id: UUID, *, expected_version: int) -> bool:
        rows = execute(
            self._client.table(_SALES_TABLE)
            .delete()
            .eq("sale_id", str(sale_id))
            .eq("version", expected_version),
            action="delete sale",
        )
        return bool(rows)


__all__ = ["SupabaseSaleRepository"]

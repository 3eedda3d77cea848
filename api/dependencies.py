"""
FastAPI dependencies: settings, the acting principal, and the sale service.

The principal is established by the upstream authentication layer, which
forwards the user id and role in the ``X-User-Id`` / ``X-User-Role`` headers.
Tests replace ``get_sale_service`` through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException

from config import Settings, load_settings
from domain.principal import Principal, Role
from services.sale_service import SaleService
from services.stock_ledger import StockLedger


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_sale_service() -> SaleService:
    # Imported here so the Supabase client is only built when a request needs it.
    from repositories.audit_repository import SupabaseAuditRepository
    from repositories.product_repository import SupabaseProductRepository
    from repositories.sale_repository import SupabaseSaleRepository

    settings = get_settings()
    ledger = StockLedger(
        SupabaseProductRepository(),
        compensate_on_failure=settings.compensate_on_failure,
    )
    return SaleService(
        SupabaseSaleRepository(),
        ledger,
        audit=SupabaseAuditRepository(),
    )


def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail={"message": "Unauthorized"})

    try:
        return Principal(user_id=UUID(x_user_id), role=Role(x_user_role.lower()))
    except ValueError:
        raise HTTPException(status_code=401, detail={"message": "Unauthorized"}) from None


__all__ = ["get_settings", "get_sale_service", "get_principal"]

"""
Sales API Endpoints.

Endpoints for recording, editing, deleting and browsing sales. Every mutation
keeps product stock consistent with the set of completed sales.

**Who may do what:**
- admin, manager: every sale, including line-item edits and deletion
- employee, spc: only sales they sold; may create sales for themselves and
  edit the sale date, but not change status or line items
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_principal, get_sale_service, get_settings
from api.models import (
    CreateSaleRequest as APICreateSaleRequest,
    ErrorDetail,
    MessageResponse,
    Pagination,
    SaleCreatedResponse,
    SaleListResponse,
    SaleResponse,
    SaleUpdatedResponse,
    UpdateSaleRequest as APIUpdateSaleRequest,
)
from config import Settings
from domain.errors import (
    InsufficientStockError,
    ProductNotFoundError,
    SaleConflictError,
    SaleError,
    SaleNotFoundError,
    SalePermissionError,
    SaleValidationError,
)
from domain.principal import Principal, can_act_for, can_change_sale_status, can_delete_sale
from domain.sale import Sale, SaleStatus
from domain.time import parse_utc_datetime
from repositories.base import SaleQueryFilters
from services.sale_service import (
    DEFAULT_PAGE_LIMIT,
    CreateSaleRequest,
    SaleService,
    UpdateSaleRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(error: SaleError) -> HTTPException:
    """Map a sale failure to an HTTP error with a structured detail."""

    if isinstance(error, InsufficientStockError):
        shortage = error.shortage
        detail = ErrorDetail(
            message=str(error),
            product_id=shortage.product_id,
            available=shortage.available,
            requested=shortage.requested,
            line_index=error.line_index,
        )
        return HTTPException(status_code=400, detail=detail.model_dump(mode="json"))

    if isinstance(error, SaleValidationError):
        status_code = 400
        detail = ErrorDetail(message=str(error), line_index=error.line_index)
    elif isinstance(error, ProductNotFoundError):
        status_code = 404
        detail = ErrorDetail(message=str(error), product_id=error.product_id)
    elif isinstance(error, SaleNotFoundError):
        status_code = 404
        detail = ErrorDetail(message="Sale not found")
    elif isinstance(error, SalePermissionError):
        status_code = 403
        detail = ErrorDetail(message=str(error))
    elif isinstance(error, SaleConflictError):
        status_code = 409
        detail = ErrorDetail(message=str(error))
    else:
        logger.error("Sale operation failed: %s", error)
        status_code = 500
        detail = ErrorDetail(message="Sale operation failed")

    return HTTPException(status_code=status_code, detail=detail.model_dump(mode="json", exclude_none=True))


def _server_error(action: str) -> HTTPException:
    logger.exception("Failed to %s", action)
    return HTTPException(status_code=500, detail={"message": f"Failed to {action}"})


def _normalize_date(value: Optional[datetime]) -> Optional[datetime]:
    return parse_utc_datetime(value) if value is not None else None


def _visible_sale(service: SaleService, sale_id: UUID, principal: Principal) -> Sale:
    """Fetch a sale the principal may see; others' sales look like they don't exist."""

    sale = service.get_sale(sale_id)
    if not can_act_for(principal, sale.sold_by):
        raise SaleNotFoundError(sale_id)
    return sale


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List Sales",
    description="Browse sales newest first. Employees only see their own sales."
)
def list_sales(
    start_date: Optional[date] = Query(None, description="Earliest sale date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Latest sale date (inclusive, whole day)"),
    employee_id: Optional[UUID] = Query(None, description="Filter by seller (admins and managers only)"),
    product_id: Optional[UUID] = Query(None, description="Only sales containing this product"),
    status: Optional[SaleStatus] = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_sale_service),
    settings: Settings = Depends(get_settings),
):
    """
    **Example usage:**
    - `GET /api/v1/sales?status=completed`
    - `GET /api/v1/sales?start_date=2025-01-01&end_date=2025-01-31&product_id=...`
    """
    sold_by = employee_id if principal.is_sales_privileged() else principal.user_id

    filters = SaleQueryFilters(
        sold_by=sold_by,
        product_id=product_id,
        status=status,
        start_date=datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None,
        end_date=datetime.combine(end_date, time.max, tzinfo=timezone.utc) if end_date else None,
    )

    try:
        result = service.list_sales(filters, page=page, limit=min(limit, settings.sales_page_limit_max))
    except SaleError as e:
        raise _http_error(e) from e
    except Exception:
        raise _server_error("fetch sales")

    return SaleListResponse(
        sales=[SaleResponse.from_domain(sale) for sale in result.sales],
        pagination=Pagination(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        ),
    )


@router.get(
    "/sales/{sale_id}",
    response_model=SaleResponse,
    summary="Get Sale",
)
def get_sale(
    sale_id: UUID,
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_sale_service),
):
    try:
        return SaleResponse.from_domain(_visible_sale(service, sale_id, principal))
    except SaleError as e:
        raise _http_error(e) from e
    except Exception:
        raise _server_error("fetch sale")


@router.post(
    "/sales",
    response_model=SaleCreatedResponse,
    status_code=201,
    summary="Record Sale",
    description="Record a sale. A completed sale deducts stock for every line item."
)
def create_sale(
    request: APICreateSaleRequest,
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_sale_service),
):
    """
    **Stock behaviour:**
    - `completed` (default): every product must have enough stock, otherwise
      nothing is recorded and the response names the short product
    - `pending` / `cancelled`: no stock is touched

    **Example request:**
    ```json
    {
      "line_items": [{"product_id": "...", "quantity": 2, "unit_price": "499.00"}],
      "status": "completed"
    }
    ```

    **Failure response (insufficient stock):**
    ```json
    {
      "detail": {
        "message": "Insufficient stock for product X. Available: 1, Requested: 2",
        "product_id": "...",
        "available": 1,
        "requested": 2,
        "line_index": 0
      }
    }
    ```
    """
    sold_by = request.sold_by or principal.user_id
    if not can_act_for(principal, sold_by):
        raise HTTPException(
            status_code=403,
            detail={"message": "You can only create sales records for yourself"},
        )

    try:
        sale = service.create_sale(
            CreateSaleRequest(
                line_items=[line.to_input() for line in request.line_items],
                sold_by=sold_by,
                status=request.status or SaleStatus.COMPLETED,
                sale_date=_normalize_date(request.sale_date),
            ),
            principal,
        )
    except SaleError as e:
        raise _http_error(e) from e
    except Exception:
        raise _server_error("create sale")

    return SaleCreatedResponse(
        sale=SaleResponse.from_domain(sale),
        total_amount=sale.total_amount,
        message="Sale created successfully",
    )


@router.put(
    "/sales/{sale_id}",
    response_model=SaleUpdatedResponse,
    summary="Update Sale",
    description="Change status, sale date and/or line items. Stock follows the change exactly once."
)
def update_sale(
    sale_id: UUID,
    request: APIUpdateSaleRequest,
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_sale_service),
):
    """
    **Stock behaviour:**
    - pending/cancelled -> completed: deducts every line item (checked)
    - completed -> pending/cancelled: restores every line item
    - line items replaced on a completed sale: only the per-product difference moves
    """
    try:
        sale = _visible_sale(service, sale_id, principal)

        if request.status is not None and request.status is not sale.status and not can_change_sale_status(principal):
            raise HTTPException(
                status_code=403,
                detail={"message": "Only admins and managers can change the status of a sale"},
            )

        updated = service.update_sale(
            UpdateSaleRequest(
                sale_id=sale_id,
                line_items=[line.to_input() for line in request.line_items] if request.line_items is not None else None,
                status=request.status,
                sale_date=_normalize_date(request.sale_date),
            ),
            principal,
        )
    except HTTPException:
        raise
    except SaleError as e:
        raise _http_error(e) from e
    except Exception:
        raise _server_error("update sale")

    return SaleUpdatedResponse(sale=SaleResponse.from_domain(updated), message="Sale updated successfully")


@router.delete(
    "/sales/{sale_id}",
    response_model=MessageResponse,
    summary="Delete Sale",
    description="Delete a sale (admins and managers). A completed sale's units are returned to stock first."
)
def delete_sale(
    sale_id: UUID,
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_sale_service),
):
    if not can_delete_sale(principal):
        raise HTTPException(
            status_code=403,
            detail={"message": "Only admins and managers can delete sales"},
        )

    try:
        service.delete_sale(sale_id, principal)
    except SaleError as e:
        raise _http_error(e) from e
    except Exception:
        raise _server_error("delete sale")

    return MessageResponse(message="Sale deleted successfully")

"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Line-item content rules (positive quantity, price present) are enforced by the
line-item calculator so errors can name the offending line; these models only
check types.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from domain.line_items import LineItemInput
from domain.sale import LineItem, Sale, SaleStatus


# ============================================================================
# Request Models
# ============================================================================

class LineItemRequest(BaseModel):
    """Single requested line item."""
    product_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("product_id", "productId"))
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(None, validation_alias=AliasChoices("unit_price", "price"))

    def to_input(self) -> LineItemInput:
        return LineItemInput(product_id=self.product_id, quantity=self.quantity, unit_price=self.unit_price)


class CreateSaleRequest(BaseModel):
    """Request to record a sale."""
    line_items: List[LineItemRequest] = Field(
        ...,
        validation_alias=AliasChoices("line_items", "products"),
        description="Products sold; at least one is required",
    )
    status: Optional[SaleStatus] = Field(None, description="Defaults to 'completed'")
    sold_by: Optional[UUID] = Field(None, description="Employee credited with the sale; defaults to the caller")
    sale_date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "line_items": [
                    {
                        "product_id": "123e4567-e89b-12d3-a456-426614174000",
                        "quantity": 2,
                        "unit_price": "499.00"
                    }
                ],
                "status": "completed"
            }
        }


class UpdateSaleRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    line_items: Optional[List[LineItemRequest]] = Field(
        None,
        validation_alias=AliasChoices("line_items", "products"),
    )
    status: Optional[SaleStatus] = None
    sale_date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "cancelled"
            }
        }


# ============================================================================
# Response Models
# ============================================================================

class LineItemResponse(BaseModel):
    product_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    @classmethod
    def from_domain(cls, item: LineItem) -> "LineItemResponse":
        return cls(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )


class SaleResponse(BaseModel):
    sale_id: UUID
    line_items: List[LineItemResponse]
    total_amount: Decimal
    status: SaleStatus
    sold_by: UUID
    sale_date: datetime
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            sale_id=sale.sale_id,
            line_items=[LineItemResponse.from_domain(item) for item in sale.line_items],
            total_amount=sale.total_amount,
            status=sale.status,
            sold_by=sale.sold_by,
            sale_date=sale.sale_date,
            created_by=sale.created_by,
            updated_by=sale.updated_by,
            created_at=sale.created_at,
            updated_at=sale.updated_at,
            version=sale.version,
        )


class SaleCreatedResponse(BaseModel):
    sale: SaleResponse
    total_amount: Decimal
    message: str


class SaleUpdatedResponse(BaseModel):
    sale: SaleResponse
    message: str


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class SaleListResponse(BaseModel):
    sales: List[SaleResponse]
    pagination: Pagination


# ============================================================================
# Error Models
# ============================================================================

class ErrorDetail(BaseModel):
    """Body of ``detail`` in error responses."""
    message: str
    product_id: Optional[UUID] = None
    available: Optional[int] = None
    requested: Optional[int] = None
    line_index: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "message": "Insufficient stock for product LG 55\" OLED. Available: 1, Requested: 3",
                "product_id": "123e4567-e89b-12d3-a456-426614174000",
                "available": 1,
                "requested": 3,
                "line_index": 0
            }
        }

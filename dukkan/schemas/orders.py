from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class OrderItemCreate(BaseModel):
    product_id: Optional[int] = None
    title: Optional[str] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1)
    selection_mode: Optional[str] = None
    selection_quantity: Optional[int] = Field(default=None, ge=0)
    selection_grams: Optional[int] = Field(default=None, ge=0)
    selection_amount: Optional[Decimal] = Field(default=None, ge=0)
    unit_option_id: Optional[str] = None


class OrderCreate(BaseModel):
    customer_phone: str
    customer_name: Optional[str] = None
    delivery_address: Optional[str] = None
    order_type: str = "catalog"
    items: list[OrderItemCreate] = Field(default_factory=list)
    delivery_fee: Optional[Decimal] = Field(default=None, ge=0)
    total: Optional[Decimal] = Field(default=None, ge=0)
    free_text_payload: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class PublicOrderCreate(BaseModel):
    """Storefront checkout; prices always come from the catalog."""

    customer_phone: str
    customer_name: Optional[str] = None
    delivery_address: Optional[str] = None
    order_type: str = "catalog"
    items: list[OrderItemCreate] = Field(default_factory=list)
    free_text_payload: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str


class ReplacementProposal(BaseModel):
    product_id: int


class ReplacementDecision(BaseModel):
    decision: str
    reason: Optional[str] = None


class OrderRejection(BaseModel):
    reason: Optional[str] = None


class ItemPriceUpdate(BaseModel):
    unit_price: Decimal = Field(..., ge=0)

"""Pydantic schemas for store service.

Money leaves the API as dinar (``Decimal`` with three places) and is stored
as fils; the conversion happens in the response validators below.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_major
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.store_service.models import (
    CommissionType,
    OrderStatus,
    SubOrderStatus,
)


def _fils_to_dinar(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return to_major(value)
    return value


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    vendor_id: uuid.UUID
    name: str
    description: Optional[str] = None
    brand: Optional[str] = None
    price: Decimal
    compare_at_price: Optional[Decimal] = None
    stock: int
    image_urls: list[str] = []
    created_at: datetime

    @field_validator("price", "compare_at_price", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    skip: int
    limit: int


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CartLineRequest(BaseModel):
    product_id: uuid.UUID
    # Validated by the snapshot builder so the error carries the product id
    quantity: int


class CheckoutRequest(BaseModel):
    lines: list[CartLineRequest] = Field(default_factory=list)


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class SubOrderLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)


class SubOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    vendor_id: uuid.UUID
    status: SubOrderStatus
    subtotal: Decimal
    commission: Decimal
    vendor_net: Decimal
    commission_type: CommissionType
    commission_value: Decimal
    lines: list[SubOrderLineResponse] = []
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    @field_validator("subtotal", "commission", "vendor_net", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    buyer_id: str
    idempotency_key: str
    status: OrderStatus
    total: Decimal
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    sub_orders: list[SubOrderResponse] = []
    created_at: datetime

    @field_validator("total", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


# Paid and refunded follow the gateway, see the pay and refund endpoints
MANUAL_TRANSITION_TARGETS = frozenset(
    {
        SubOrderStatus.FULFILLING,
        SubOrderStatus.COMPLETED,
        SubOrderStatus.CANCELLED,
    }
)


class TransitionRequest(BaseModel):
    status: SubOrderStatus

    @field_validator("status")
    @classmethod
    def check_manual_target(cls, value: SubOrderStatus) -> SubOrderStatus:
        if value not in MANUAL_TRANSITION_TARGETS:
            allowed = ", ".join(sorted(s.value for s in MANUAL_TRANSITION_TARGETS))
            raise ValueError(f"status must be one of: {allowed}")
        return value


# ============================================================================
# ANALYTICS SCHEMAS
# ============================================================================


class VendorSalesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vendor_id: uuid.UUID
    store_name: Optional[str] = None
    sub_order_count: int
    revenue: Decimal
    commission: Decimal
    vendor_net: Decimal

    @field_validator("revenue", "commission", "vendor_net", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)


class SalesSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_count: int
    total_revenue: Decimal
    total_commission: Decimal
    by_vendor: list[VendorSalesResponse] = []

    @field_validator("total_revenue", "total_commission", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        return _fils_to_dinar(value)

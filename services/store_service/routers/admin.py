"""Admin router: order oversight, manual transitions, refunds and analytics."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.payment_gateway import PaymentGateway, get_payment_gateway
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    OrderListResponse,
    OrderResponse,
    SalesSummaryResponse,
    SubOrderResponse,
    TransitionRequest,
)
from services.store_service.services.order_state import (
    get_order,
    refund_sub_order,
    transition_sub_order,
)
from services.store_service.services.queries import list_orders, sales_summary
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def admin_list_orders(
    status: Optional[OrderStatus] = None,
    buyer_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total = await list_orders(
        db, buyer_id=buyer_id, status=status, skip=skip, limit=limit
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def admin_get_order(
    order_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_order(db, order_id)


# ============================================================================
# SUB-ORDERS
# ============================================================================


@router.post("/sub-orders/{sub_order_id}/transition", response_model=SubOrderResponse)
async def admin_transition_sub_order(
    sub_order_id: uuid.UUID,
    request: TransitionRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Move a sub-order along its lifecycle on a vendor's behalf."""
    return await transition_sub_order(
        db, sub_order_id, request.status, actor=f"admin:{admin.user_id}"
    )


@router.post("/sub-orders/{sub_order_id}/refund", response_model=SubOrderResponse)
async def admin_refund_sub_order(
    sub_order_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Refund a completed sub-order through the payment gateway."""
    return await refund_sub_order(
        db, sub_order_id, gateway, actor=f"admin:{admin.user_id}"
    )


# ============================================================================
# ANALYTICS
# ============================================================================


@router.get("/analytics", response_model=SalesSummaryResponse)
async def admin_sales_summary(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await sales_summary(db, start=start, end=end)
    return SalesSummaryResponse.model_validate(summary)

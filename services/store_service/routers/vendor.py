"""Vendor router: a vendor's own sub-orders and their fulfilment."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_vendor
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import SubOrderStatus
from services.store_service.routers._helpers import get_vendor_sub_order
from services.store_service.schemas import SubOrderResponse
from services.store_service.services.order_state import transition_sub_order
from services.store_service.services.queries import list_sub_orders
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["vendor"])


@router.get("/sub-orders", response_model=list[SubOrderResponse])
async def list_my_sub_orders(
    status: Optional[SubOrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_sub_orders(
        db, vendor_id=current_user.vendor_id, status=status, skip=skip, limit=limit
    )


async def _move(
    db: AsyncSession,
    sub_order_id: uuid.UUID,
    target: SubOrderStatus,
    current_user: AuthUser,
):
    await get_vendor_sub_order(db, sub_order_id, current_user)
    return await transition_sub_order(
        db, sub_order_id, target, actor=f"vendor:{current_user.user_id}"
    )


@router.post("/sub-orders/{sub_order_id}/fulfil", response_model=SubOrderResponse)
async def start_fulfilment(
    sub_order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    """Paid -> fulfilling."""
    return await _move(db, sub_order_id, SubOrderStatus.FULFILLING, current_user)


@router.post("/sub-orders/{sub_order_id}/complete", response_model=SubOrderResponse)
async def complete_sub_order(
    sub_order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    """Fulfilling -> completed; settles the vendor's earnings."""
    return await _move(db, sub_order_id, SubOrderStatus.COMPLETED, current_user)


@router.post("/sub-orders/{sub_order_id}/cancel", response_model=SubOrderResponse)
async def cancel_sub_order(
    sub_order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel a paid or fulfilling sub-order; restocks and reverses earnings."""
    return await _move(db, sub_order_id, SubOrderStatus.CANCELLED, current_user)

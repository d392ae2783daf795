"""Store orders router: checkout, order history and payment."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.payment_gateway import PaymentGateway, get_payment_gateway
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.routers._helpers import get_checkout_config
from services.store_service.schemas import (
    CheckoutRequest,
    OrderListResponse,
    OrderResponse,
)
from services.store_service.services.checkout import CheckoutConfig, CheckoutService
from services.store_service.services.order_state import get_order
from services.store_service.services.queries import list_orders
from services.store_service.services.snapshot import CartLine
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("/checkout", response_model=OrderResponse, status_code=201)
async def checkout(
    request: CheckoutRequest,
    idempotency_key: str = Header(..., alias="Idempotency-Key", min_length=1),
    current_user: AuthUser = Depends(get_current_user),
    config: CheckoutConfig = Depends(get_checkout_config),
    db: AsyncSession = Depends(get_async_db),
):
    """Place an order for the submitted cart.

    Retrying with the same ``Idempotency-Key`` returns the original order.
    """
    service = CheckoutService(config)
    lines = [CartLine(line.product_id, line.quantity) for line in request.lines]
    return await service.checkout(db, current_user.user_id, lines, idempotency_key)


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current buyer's orders, newest first."""
    orders, total = await list_orders(
        db, buyer_id=current_user.user_id, status=status, skip=skip, limit=limit
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


async def _get_own_order(db: AsyncSession, order_id: uuid.UUID, buyer_id: str):
    order = await get_order(db, order_id)
    if order.buyer_id != buyer_id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await _get_own_order(db, order_id, current_user.user_id)


@router.post("/orders/{order_id}/pay", response_model=OrderResponse)
async def pay_for_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    config: CheckoutConfig = Depends(get_checkout_config),
    db: AsyncSession = Depends(get_async_db),
):
    """Charge the buyer for every sub-order still awaiting payment."""
    await _get_own_order(db, order_id, current_user.user_id)
    service = CheckoutService(config, gateway=gateway)
    return await service.pay(db, order_id)

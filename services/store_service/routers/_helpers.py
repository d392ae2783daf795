"""Shared dependencies for store routers."""

import uuid

from fastapi import HTTPException
from libs.auth.models import AuthUser
from services.store_service.models import SubOrder
from services.store_service.services.checkout import CheckoutConfig
from services.store_service.services.order_state import get_sub_order
from sqlalchemy.ext.asyncio import AsyncSession


def get_checkout_config() -> CheckoutConfig:
    """Checkout configuration resolved from settings at the HTTP edge."""
    return CheckoutConfig.from_settings()


async def get_vendor_sub_order(
    db: AsyncSession, sub_order_id: uuid.UUID, current_user: AuthUser
) -> SubOrder:
    """Load a sub-order the calling vendor owns, 404 otherwise."""
    sub_order = await get_sub_order(db, sub_order_id)
    if sub_order.vendor_id != current_user.vendor_id:
        raise HTTPException(status_code=404, detail="Sub-order not found")
    return sub_order

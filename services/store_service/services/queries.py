"""Read-only queries behind the buyer, vendor and admin views."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from services.store_service.models import (
    Order,
    OrderStatus,
    SubOrder,
    SubOrderStatus,
    Vendor,
)
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

# Sub-orders whose money the platform currently holds
REALISED_STATUSES = (
    SubOrderStatus.PAID,
    SubOrderStatus.FULFILLING,
    SubOrderStatus.COMPLETED,
)


@dataclass(frozen=True)
class VendorSales:
    vendor_id: uuid.UUID
    store_name: Optional[str]
    sub_order_count: int
    revenue: int
    commission: int
    vendor_net: int


@dataclass(frozen=True)
class SalesSummary:
    order_count: int
    total_revenue: int
    total_commission: int
    by_vendor: list[VendorSales] = field(default_factory=list)


async def list_orders(
    db: AsyncSession,
    *,
    buyer_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Order], int]:
    filters = []
    if buyer_id is not None:
        filters.append(Order.buyer_id == buyer_id)
    if status is not None:
        filters.append(Order.status == status)

    total = (
        await db.execute(select(func.count()).select_from(Order).where(*filters))
    ).scalar_one()
    result = await db.execute(
        select(Order)
        .where(*filters)
        .order_by(Order.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total)


async def list_sub_orders(
    db: AsyncSession,
    *,
    vendor_id: Optional[uuid.UUID] = None,
    status: Optional[SubOrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[SubOrder]:
    query = select(SubOrder).order_by(SubOrder.created_at.desc())
    if vendor_id is not None:
        query = query.where(SubOrder.vendor_id == vendor_id)
    if status is not None:
        query = query.where(SubOrder.status == status)
    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all())


async def sales_summary(
    db: AsyncSession,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> SalesSummary:
    """Revenue and commission over realised sub-orders, grouped by vendor."""
    filters = [SubOrder.status.in_(REALISED_STATUSES)]
    if start is not None:
        filters.append(SubOrder.created_at >= as_utc(start))
    if end is not None:
        filters.append(SubOrder.created_at < as_utc(end))

    result = await db.execute(
        select(
            SubOrder.vendor_id,
            Vendor.store_name,
            func.count(SubOrder.id),
            func.coalesce(func.sum(SubOrder.subtotal), 0),
            func.coalesce(func.sum(SubOrder.commission), 0),
            func.coalesce(func.sum(SubOrder.vendor_net), 0),
        )
        .outerjoin(Vendor, Vendor.id == SubOrder.vendor_id)
        .where(*filters)
        .group_by(SubOrder.vendor_id, Vendor.store_name)
        .order_by(func.sum(SubOrder.subtotal).desc())
    )
    by_vendor = [
        VendorSales(
            vendor_id=vendor_id,
            store_name=store_name,
            sub_order_count=int(count),
            revenue=int(revenue),
            commission=int(commission),
            vendor_net=int(net),
        )
        for vendor_id, store_name, count, revenue, commission, net in result.all()
    ]

    order_count = (
        await db.execute(select(func.count(distinct(SubOrder.order_id))).where(*filters))
    ).scalar_one()

    return SalesSummary(
        order_count=int(order_count),
        total_revenue=sum(v.revenue for v in by_vendor),
        total_commission=sum(v.commission for v in by_vendor),
        by_vendor=by_vendor,
    )

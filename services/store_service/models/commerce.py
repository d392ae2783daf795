"""Store commerce models: orders, per-vendor sub-orders and checkout leases."""

import random
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import (
    CommissionType,
    OrderStatus,
    SubOrderStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """A buyer's checkout. Exclusively owns its sub-orders."""

    __tablename__ = "store_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )

    buyer_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    idempotency_key: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )

    # Sum of sub-order subtotals, in fils. Commission is never added on top.
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    # Derived from the sub-orders on every transition; stored for querying only
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.CREATED,
        nullable=False,
    )

    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100), index=True, nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Set while a charge is in flight; a claim past this instant is abandoned
    payment_claimed_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="order_total_non_negative"),
        Index("ix_store_orders_buyer_created", "buyer_id", "created_at"),
    )

    sub_orders = relationship(
        "SubOrder",
        back_populates="order",
        order_by="SubOrder.position",
        lazy="selectin",
    )

    @staticmethod
    def generate_order_number() -> str:
        """Generate a unique order number like MB-20261019-A1B2C."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=5)
        )
        return f"MB-{date_part}-{random_part}"

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class SubOrder(Base):
    """The slice of an order that belongs to one vendor."""

    __tablename__ = "store_sub_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_orders.id"), index=True, nullable=False
    )
    # Lookup only; vendors are owned by the vendor subsystem
    vendor_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Money, in fils
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    commission: Mapped[int] = mapped_column(Integer, nullable=False)
    vendor_net: Mapped[int] = mapped_column(Integer, nullable=False)

    # Policy snapshot at checkout time
    commission_type: Mapped[CommissionType] = mapped_column(
        SAEnum(
            CommissionType,
            values_callable=enum_values,
            name="store_commission_type_enum",
        ),
        nullable=False,
    )
    commission_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 3, asdecimal=True), nullable=False
    )

    status: Mapped[SubOrderStatus] = mapped_column(
        SAEnum(
            SubOrderStatus,
            values_callable=enum_values,
            name="store_sub_order_status_enum",
        ),
        default=SubOrderStatus.CREATED,
        nullable=False,
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refund_claimed_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "vendor_net + commission = subtotal", name="sub_order_split_balances"
        ),
        CheckConstraint("commission >= 0", name="sub_order_commission_non_negative"),
        Index("ix_store_sub_orders_vendor_status", "vendor_id", "status"),
    )

    order = relationship("Order", back_populates="sub_orders")
    lines = relationship(
        "SubOrderLine",
        back_populates="sub_order",
        order_by="SubOrderLine.position",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<SubOrder {self.id} vendor={self.vendor_id} status={self.status}>"


class SubOrderLine(Base):
    """Priced line captured at checkout. Never updated."""

    __tablename__ = "store_sub_order_lines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sub_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_sub_orders.id"), index=True, nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="line_quantity_positive"),
    )

    sub_order = relationship("SubOrder", back_populates="lines")

    def __repr__(self):
        return f"<SubOrderLine product={self.product_id} qty={self.quantity}>"


# ============================================================================
# CHECKOUT LEASE
# ============================================================================


class CheckoutLock(Base):
    """Short lease serialising one buyer's concurrent checkout attempts."""

    __tablename__ = "store_checkout_locks"

    buyer_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<CheckoutLock buyer={self.buyer_id} until={self.expires_at}>"

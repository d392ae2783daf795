"""Store catalog models: vendors, products and the stock audit trail."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import (
    CommissionType,
    StockMovementType,
    enum_values,
)
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# VENDOR MODEL
# ============================================================================


class Vendor(Base):
    """Independent seller. Owned by the vendor subsystem; read-only here."""

    __tablename__ = "store_vendors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Commission override; both null means "platform default rate"
    commission_type: Mapped[Optional[CommissionType]] = mapped_column(
        SAEnum(
            CommissionType,
            values_callable=enum_values,
            name="store_commission_type_enum",
        ),
        nullable=True,
    )
    # Percent for PERCENTAGE, dinar per sub-order for FIXED
    commission_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 3, asdecimal=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    products = relationship("Product", back_populates="vendor")

    def __repr__(self):
        return f"<Vendor {self.store_name}>"


# ============================================================================
# PRODUCT MODEL
# ============================================================================


class Product(Base):
    """Sellable product. Stock only moves through conditional updates."""

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_vendors.id"), index=True, nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Pricing, in fils
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    compare_at_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Opaque URLs from the media store
    image_urls: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="stock_non_negative"),
        CheckConstraint("price >= 0", name="price_non_negative"),
    )

    vendor = relationship("Vendor", back_populates="products")

    def __repr__(self):
        return f"<Product {self.name} stock={self.stock}>"


# ============================================================================
# STOCK AUDIT
# ============================================================================


class StockMovement(Base):
    """Append-only record of every reservation and release."""

    __tablename__ = "store_stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )
    movement_type: Mapped[StockMovementType] = mapped_column(
        SAEnum(
            StockMovementType,
            values_callable=enum_values,
            name="store_stock_movement_type_enum",
        ),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # Positive = back on shelf, negative = reserved

    reference_type: Mapped[Optional[str]] = mapped_column(
        String(30), nullable=True
    )  # checkout, sub_order
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        Index("ix_store_stock_movements_product_created", "product_id", "created_at"),
    )

    def __repr__(self):
        return f"<StockMovement {self.movement_type} qty={self.quantity}>"

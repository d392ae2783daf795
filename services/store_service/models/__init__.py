"""Store Service models package."""

from services.store_service.models.catalog import Product, StockMovement, Vendor
from services.store_service.models.commerce import (
    CheckoutLock,
    Order,
    SubOrder,
    SubOrderLine,
)
from services.store_service.models.enums import (
    CommissionType,
    OrderStatus,
    StockMovementType,
    SubOrderStatus,
)

__all__ = [
    "CheckoutLock",
    "CommissionType",
    "Order",
    "OrderStatus",
    "Product",
    "StockMovement",
    "StockMovementType",
    "SubOrder",
    "SubOrderLine",
    "SubOrderStatus",
    "Vendor",
]

"""Read access to the product catalog."""

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from services.store_service.models import Product
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class ProductInfo:
    id: uuid.UUID
    vendor_id: uuid.UUID
    price: int
    compare_at_price: Optional[int]
    stock: int
    version: int


class Catalog(Protocol):
    async def get_product(self, product_id: uuid.UUID) -> Optional[ProductInfo]:
        ...


class SqlCatalog:
    """Catalog backed by ``store_products``. Inactive products do not resolve."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: uuid.UUID) -> Optional[ProductInfo]:
        result = await self.db.execute(
            select(
                Product.id,
                Product.vendor_id,
                Product.price,
                Product.compare_at_price,
                Product.stock,
                Product.version,
            ).where(Product.id == product_id, Product.is_active.is_(True))
        )
        row = result.first()
        if row is None:
            return None
        return ProductInfo(*row)

"""Cart snapshot: price a buyer's cart from the catalog.

The snapshot is the financial truth of an order. Prices always come from the
catalog, never from the client, and later catalog edits do not reach a
snapshot that has already been taken.
"""

import uuid
from dataclasses import dataclass
from typing import Sequence

from libs.common.errors import EmptyCart, InvalidQuantity, UnknownProduct
from services.store_service.services.catalog import Catalog


@dataclass(frozen=True)
class CartLine:
    product_id: uuid.UUID
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product_id: uuid.UUID
    vendor_id: uuid.UUID
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    buyer_id: str
    lines: tuple[PricedLine, ...]

    @property
    def subtotal(self) -> int:
        return sum(line.line_total for line in self.lines)

    def quantities(self) -> dict[uuid.UUID, int]:
        """Requested quantity per product, merging repeated lines."""
        totals: dict[uuid.UUID, int] = {}
        for line in self.lines:
            totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
        return totals


async def build_snapshot(
    catalog: Catalog, buyer_id: str, lines: Sequence[CartLine]
) -> CartSnapshot:
    """Resolve every cart line against the catalog, preserving line order."""
    if not lines:
        raise EmptyCart()

    priced: list[PricedLine] = []
    for line in lines:
        if line.quantity <= 0:
            raise InvalidQuantity(line.product_id, line.quantity)
        product = await catalog.get_product(line.product_id)
        if product is None:
            raise UnknownProduct(line.product_id)
        priced.append(
            PricedLine(
                product_id=product.id,
                vendor_id=product.vendor_id,
                quantity=line.quantity,
                unit_price=product.price,
            )
        )

    return CartSnapshot(buyer_id=buyer_id, lines=tuple(priced))

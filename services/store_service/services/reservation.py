"""Stock reservation as a saga of per-product conditional updates.

Each product row is decremented on its own with ``WHERE stock >= :qty`` and
committed immediately. There is no transaction spanning several products: if
a later line fails, the lines already applied are restored by compensating
increments in reverse order before the failure is reported.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional

from libs.common.errors import InsufficientStock
from libs.common.logging import get_logger
from libs.db.session import shielded_commit
from services.store_service.models import Product, StockMovement, StockMovementType
from services.store_service.services.snapshot import CartSnapshot
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReservedItem:
    product_id: uuid.UUID
    quantity: int


@dataclass
class Reservation:
    """Stock taken by one checkout attempt, in the order it was applied."""

    reference_id: uuid.UUID
    items: list[ReservedItem] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


async def _decrement(
    db: AsyncSession,
    product_id: uuid.UUID,
    quantity: int,
    reference_type: str,
    reference_id: Optional[uuid.UUID],
) -> bool:
    result = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity, version=Product.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    db.add(
        StockMovement(
            product_id=product_id,
            movement_type=StockMovementType.RESERVATION,
            quantity=-quantity,
            reference_type=reference_type,
            reference_id=reference_id,
        )
    )
    await db.flush()
    return True


async def _increment(
    db: AsyncSession,
    product_id: uuid.UUID,
    quantity: int,
    reference_type: str,
    reference_id: Optional[uuid.UUID],
) -> None:
    await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity, version=Product.version + 1)
        .execution_options(synchronize_session=False)
    )
    db.add(
        StockMovement(
            product_id=product_id,
            movement_type=StockMovementType.RELEASE,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
        )
    )
    await db.flush()


async def reserve_stock(
    db: AsyncSession, snapshot: CartSnapshot, *, reference_id: uuid.UUID
) -> Reservation:
    """Take the snapshot's quantities out of stock, all or nothing.

    Products are visited in ascending id order so two checkouts touching the
    same products always contend in the same sequence. Raises
    ``InsufficientStock`` for the first product that cannot be covered, after
    every earlier decrement has been restored.
    """
    reservation = Reservation(reference_id=reference_id)
    wanted = sorted(snapshot.quantities().items(), key=lambda item: str(item[0]))

    try:
        for product_id, quantity in wanted:
            applied = await _decrement(
                db, product_id, quantity, "checkout", reference_id
            )
            if not applied:
                await db.rollback()
                logger.info(
                    "Insufficient stock for product %s (wanted %d, checkout %s)",
                    product_id,
                    quantity,
                    reference_id,
                )
                raise InsufficientStock(product_id)
            item = ReservedItem(product_id, quantity)
            try:
                await shielded_commit(db)
            except asyncio.CancelledError:
                # The decrement landed, so it has to be compensated too
                reservation.items.append(item)
                raise
            reservation.items.append(item)
    except (Exception, asyncio.CancelledError):
        if reservation.items:
            await db.rollback()
            await _compensate(db, reservation)
        raise

    logger.info(
        "Reserved %d unit(s) across %d product(s) for checkout %s",
        reservation.total_quantity,
        len(reservation.items),
        reference_id,
    )
    return reservation


async def _compensate(db: AsyncSession, reservation: Reservation) -> None:
    logger.warning(
        "Compensating reservation %s: restoring %d product(s)",
        reservation.reference_id,
        len(reservation.items),
    )
    await release_stock(
        db,
        reversed(reservation.items),
        reference_type="compensation",
        reference_id=reservation.reference_id,
    )
    reservation.items.clear()


async def release_stock(
    db: AsyncSession,
    items: Iterable[ReservedItem],
    *,
    reference_type: str,
    reference_id: Optional[uuid.UUID],
    commit: bool = True,
) -> None:
    """Put quantities back on the shelf.

    With ``commit=True`` each product is committed on its own, matching the
    reservation path. With ``commit=False`` the increments join the caller's
    transaction, as the order state machine needs.
    """
    for item in items:
        await _increment(
            db, item.product_id, item.quantity, reference_type, reference_id
        )
        if commit:
            await db.commit()
        logger.info(
            "Released %d unit(s) of product %s (%s %s)",
            item.quantity,
            item.product_id,
            reference_type,
            reference_id,
        )

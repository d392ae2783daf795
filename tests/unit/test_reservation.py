"""Unit tests for the stock reservation saga."""

import asyncio
import uuid

import pytest
from libs.common.errors import InsufficientStock
from services.store_service.models import Product, StockMovement, StockMovementType
from services.store_service.services import reservation as reservation_module
from services.store_service.services.reservation import (
    ReservedItem,
    release_stock,
    reserve_stock,
)
from services.store_service.services.snapshot import CartSnapshot, PricedLine
from sqlalchemy import select
from tests.factories import ProductFactory, VendorFactory, persist

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snapshot(*items) -> CartSnapshot:
    """Snapshot for ``(product, quantity)`` pairs."""
    return CartSnapshot(
        buyer_id="buyer-1",
        lines=tuple(
            PricedLine(
                product_id=product.id,
                vendor_id=product.vendor_id,
                quantity=quantity,
                unit_price=product.price,
            )
            for product, quantity in items
        ),
    )


async def _stock(db, product_id) -> tuple[int, int]:
    result = await db.execute(
        select(Product.stock, Product.version).where(Product.id == product_id)
    )
    return tuple(result.one())


async def _movements(db, product_id) -> list[int]:
    result = await db.execute(
        select(StockMovement.quantity)
        .where(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# reserve_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_decrements_each_product_and_records_movements(db_session):
    vendor = VendorFactory.create()
    brakes = ProductFactory.create(vendor_id=vendor.id, stock=5)
    filters = ProductFactory.create(vendor_id=vendor.id, stock=3)
    await persist(db_session, vendor, brakes, filters)

    reservation = await reserve_stock(
        db_session, _snapshot((brakes, 2), (filters, 3)), reference_id=uuid.uuid4()
    )

    assert await _stock(db_session, brakes.id) == (3, 2)
    assert await _stock(db_session, filters.id) == (0, 2)
    assert reservation.total_quantity == 5
    assert await _movements(db_session, brakes.id) == [-2]

    movement = (
        await db_session.execute(
            select(StockMovement).where(StockMovement.product_id == filters.id)
        )
    ).scalar_one()
    assert movement.movement_type == StockMovementType.RESERVATION
    assert movement.reference_type == "checkout"
    assert movement.reference_id == reservation.reference_id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_visits_products_in_ascending_id_order(db_session):
    vendor = VendorFactory.create()
    low = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-000000000001"), vendor_id=vendor.id
    )
    high = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-000000000002"), vendor_id=vendor.id
    )
    await persist(db_session, vendor, low, high)

    reservation = await reserve_stock(
        db_session, _snapshot((high, 1), (low, 1)), reference_id=uuid.uuid4()
    )

    assert [item.product_id for item in reservation.items] == [low.id, high.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_line_restores_earlier_lines(db_session):
    vendor = VendorFactory.create()
    available = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-00000000000a"),
        vendor_id=vendor.id,
        stock=5,
    )
    sold_out = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-00000000000b"),
        vendor_id=vendor.id,
        stock=0,
    )
    await persist(db_session, vendor, available, sold_out)

    with pytest.raises(InsufficientStock) as exc_info:
        await reserve_stock(
            db_session,
            _snapshot((available, 2), (sold_out, 1)),
            reference_id=uuid.uuid4(),
        )

    assert exc_info.value.product_id == sold_out.id
    stock, _ = await _stock(db_session, available.id)
    assert stock == 5
    # Reserved, then put back
    assert sorted(await _movements(db_session, available.id)) == [-2, 2]
    assert await _movements(db_session, sold_out.id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancellation_after_a_landed_commit_restores_that_line(
    db_session, monkeypatch
):
    vendor = VendorFactory.create()
    first = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-00000000000a"),
        vendor_id=vendor.id,
        stock=5,
    )
    second = ProductFactory.create(
        id=uuid.UUID("00000000-0000-0000-0000-00000000000b"),
        vendor_id=vendor.id,
        stock=5,
    )
    await persist(db_session, vendor, first, second)
    commits = 0

    async def commit_then_cancel(db):
        nonlocal commits
        await db.commit()
        commits += 1
        if commits == 2:
            raise asyncio.CancelledError()

    monkeypatch.setattr(reservation_module, "shielded_commit", commit_then_cancel)

    with pytest.raises(asyncio.CancelledError):
        await reserve_stock(
            db_session, _snapshot((first, 1), (second, 2)), reference_id=uuid.uuid4()
        )

    assert (await _stock(db_session, first.id))[0] == 5
    assert (await _stock(db_session, second.id))[0] == 5
    assert sorted(await _movements(db_session, second.id)) == [-2, 2]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_merged_quantity_is_checked_against_stock(db_session):
    vendor = VendorFactory.create()
    product = ProductFactory.create(vendor_id=vendor.id, stock=3)
    await persist(db_session, vendor, product)

    with pytest.raises(InsufficientStock):
        await reserve_stock(
            db_session,
            _snapshot((product, 2), (product, 2)),
            reference_id=uuid.uuid4(),
        )

    assert await _stock(db_session, product.id) == (3, 1)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_last_unit_race_has_exactly_one_winner(db_session, session_factory):
    vendor = VendorFactory.create()
    product = ProductFactory.create(vendor_id=vendor.id, stock=1)
    await persist(db_session, vendor, product)

    async def attempt():
        async with session_factory() as session:
            return await reserve_stock(
                session, _snapshot((product, 1)), reference_id=uuid.uuid4()
            )

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(winners) == 1
    assert len(losers) == 1
    stock, _ = await _stock(db_session, product.id)
    assert stock == 0


# ---------------------------------------------------------------------------
# release_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_increments_stock(db_session):
    vendor = VendorFactory.create()
    product = ProductFactory.create(vendor_id=vendor.id, stock=1)
    await persist(db_session, vendor, product)
    reference = uuid.uuid4()

    await release_stock(
        db_session,
        [ReservedItem(product.id, 4)],
        reference_type="sub_order",
        reference_id=reference,
    )

    assert await _stock(db_session, product.id) == (5, 2)
    movement = (
        await db_session.execute(
            select(StockMovement).where(StockMovement.product_id == product.id)
        )
    ).scalar_one()
    assert movement.movement_type == StockMovementType.RELEASE
    assert movement.quantity == 4
    assert movement.reference_id == reference

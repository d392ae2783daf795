"""Unit tests for the vendor earnings ledger.

Tests call ledger functions directly with the db_session fixture.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from libs.common.errors import UnknownSubOrder
from services.store_service.models import SubOrderStatus
from services.store_service.services.order_state import pay_order
from services.wallet_service.models import TransactionKind, WalletTransaction
from services.wallet_service.services.ledger import (
    append_transaction,
    get_balance,
    list_transactions,
    reconcile,
    reverse_credit,
    settle_credit,
)
from sqlalchemy import func, select
from tests.conftest import FakePaymentGateway
from tests.factories import advance, place_order, seed_two_vendor_catalog


async def _placed_sub_order(db):
    vendor_a, _, product_a, _ = await seed_two_vendor_catalog(db)
    order = await place_order(db, [(product_a, 2)])
    return vendor_a, order.sub_orders[0]


async def _count(db) -> int:
    return (
        await db.execute(select(func.count()).select_from(WalletTransaction))
    ).scalar_one()


# ---------------------------------------------------------------------------
# append_transaction
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_append_rejects_unknown_sub_order(db_session):
    with pytest.raises(UnknownSubOrder):
        await append_transaction(
            db_session,
            vendor_id=uuid.uuid4(),
            sub_order_id=uuid.uuid4(),
            amount=1_000,
            kind=TransactionKind.PENDING_CREDIT,
            idempotency_key="orphan",
            description="No such sub-order",
        )

    assert await _count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_payouts_may_omit_the_sub_order(db_session):
    with pytest.raises(UnknownSubOrder):
        await append_transaction(
            db_session,
            vendor_id=uuid.uuid4(),
            sub_order_id=None,
            amount=1_000,
            kind=TransactionKind.SETTLED_CREDIT,
            idempotency_key="free-money",
            description="Missing sub-order",
        )

    payout = await append_transaction(
        db_session,
        vendor_id=uuid.uuid4(),
        sub_order_id=None,
        amount=-1_000,
        kind=TransactionKind.PAYOUT,
        idempotency_key="payout-1",
        description="Payout",
    )
    assert payout.sub_order_id is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_append_is_idempotent_by_key(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)
    count_before = await _count(db_session)

    kwargs = dict(
        vendor_id=vendor.id,
        sub_order_id=sub_order.id,
        amount=-500,
        kind=TransactionKind.REVERSAL,
        idempotency_key=f"manual-{uuid.uuid4().hex}",
        description="Goodwill correction",
    )
    first = await append_transaction(db_session, **kwargs)
    second = await append_transaction(db_session, **kwargs)

    assert first.id == second.id
    assert await _count(db_session) == count_before + 1


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_credit_is_pending(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)

    balance = await get_balance(db_session, vendor.id)

    assert balance.pending == sub_order.vendor_net == 18_000
    assert balance.available == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_settle_is_idempotent_and_moves_pending_to_available(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)

    first = await settle_credit(db_session, sub_order)
    second = await settle_credit(db_session, sub_order)

    assert first.id == second.id
    assert first.related_transaction_id is not None
    balance = await get_balance(db_session, vendor.id)
    assert (balance.pending, balance.available) == (0, 18_000)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reversing_a_pending_credit_lowers_available(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)

    reversal = await reverse_credit(db_session, sub_order)

    assert reversal.amount == -18_000
    balance = await get_balance(db_session, vendor.id)
    assert (balance.pending, balance.available) == (0, -18_000)
    assert (await reconcile(db_session, vendor.id)).balanced


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reversing_a_settled_credit_reduces_available(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)
    settled = await settle_credit(db_session, sub_order)

    reversal = await reverse_credit(db_session, sub_order)

    assert reversal.related_transaction_id == settled.id
    balance = await get_balance(db_session, vendor.id)
    assert (balance.pending, balance.available) == (0, 0)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_balances_are_per_vendor(db_session):
    vendor_a, vendor_b, product_a, product_b = await seed_two_vendor_catalog(db_session)
    order = await place_order(db_session, [(product_a, 1), (product_b, 2)])
    await pay_order(db_session, order.id, FakePaymentGateway())
    await advance(
        db_session,
        order.sub_orders[1].id,
        SubOrderStatus.FULFILLING,
        SubOrderStatus.COMPLETED,
    )

    a = await get_balance(db_session, vendor_a.id)
    b = await get_balance(db_session, vendor_b.id)

    assert (a.pending, a.available) == (9_000, 0)
    assert (b.pending, b.available) == (0, 9_000)


# ---------------------------------------------------------------------------
# Statements and audit
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_transactions_filters_by_vendor_and_time(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)
    await settle_credit(db_session, sub_order)
    now = datetime.now(timezone.utc)

    rows, total = await list_transactions(db_session, vendor.id)
    assert total == 2
    assert [row.kind for row in rows] == [
        TransactionKind.PENDING_CREDIT,
        TransactionKind.SETTLED_CREDIT,
    ]

    future, future_total = await list_transactions(
        db_session, vendor.id, start=now + timedelta(minutes=1)
    )
    assert (future, future_total) == ([], 0)

    _, other_total = await list_transactions(db_session, uuid.uuid4())
    assert other_total == 0

    page, paged_total = await list_transactions(db_session, vendor.id, limit=1)
    assert len(page) == 1
    assert paged_total == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reconcile_matches_aggregate(db_session):
    vendor, sub_order = await _placed_sub_order(db_session)
    await settle_credit(db_session, sub_order)
    await reverse_credit(db_session, sub_order)

    report = await reconcile(db_session, vendor.id)

    assert report.balanced
    assert report.transaction_count == 3
    assert report.ledger.available == 0

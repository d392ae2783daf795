"""Unit tests for splitting a cart into per-vendor sub-orders."""

import uuid
from decimal import Decimal

import pytest
from services.store_service.models import CommissionType
from services.store_service.services.snapshot import CartSnapshot, PricedLine
from services.store_service.services.splitter import (
    CommissionPolicy,
    CommissionTerms,
    load_commission_policy,
    split_order,
)
from tests.factories import VendorFactory, persist

V1 = uuid.UUID("11111111-1111-1111-1111-111111111111")
V2 = uuid.UUID("22222222-2222-2222-2222-222222222222")


def _line(vendor_id, unit_price, quantity) -> PricedLine:
    return PricedLine(
        product_id=uuid.uuid4(),
        vendor_id=vendor_id,
        quantity=quantity,
        unit_price=unit_price,
    )


def _snapshot(*lines) -> CartSnapshot:
    return CartSnapshot(buyer_id="buyer-1", lines=tuple(lines))


@pytest.mark.unit
def test_worked_example_at_ten_percent():
    snapshot = _snapshot(_line(V1, 10_000, 2), _line(V2, 5_000, 1))

    draft = split_order(
        "buyer-1", "key-1", snapshot, CommissionPolicy(default_rate=Decimal("10"))
    )

    first, second = draft.sub_orders
    assert (first.vendor_id, first.subtotal, first.commission, first.vendor_net) == (
        V1,
        20_000,
        2_000,
        18_000,
    )
    assert (second.vendor_id, second.subtotal, second.commission, second.vendor_net) == (
        V2,
        5_000,
        500,
        4_500,
    )
    assert draft.total == 25_000
    assert draft.buyer_id == "buyer-1"
    assert draft.idempotency_key == "key-1"


@pytest.mark.unit
def test_groups_by_first_appearance_and_keeps_line_order():
    a1, b1, a2 = _line(V2, 100, 1), _line(V1, 200, 1), _line(V2, 300, 1)

    draft = split_order(
        "buyer-1", "key", _snapshot(a1, b1, a2), CommissionPolicy(Decimal("5"))
    )

    assert [sub.vendor_id for sub in draft.sub_orders] == [V2, V1]
    assert draft.sub_orders[0].lines == (a1, a2)
    assert [sub.position for sub in draft.sub_orders] == [0, 1]


@pytest.mark.unit
def test_commission_is_rounded_once_per_sub_order():
    # Three lines of 10 fils at 5%: 0.5 fils each, 1.5 fils together
    snapshot = _snapshot(*(_line(V1, 10, 1) for _ in range(3)))

    draft = split_order("buyer-1", "key", snapshot, CommissionPolicy(Decimal("5")))

    assert draft.sub_orders[0].commission == 2
    assert draft.sub_orders[0].vendor_net == 28


@pytest.mark.unit
def test_net_plus_commission_equals_subtotal_for_awkward_rates():
    snapshot = _snapshot(_line(V1, 3_333, 3), _line(V2, 1_001, 7))

    draft = split_order("buyer-1", "key", snapshot, CommissionPolicy(Decimal("7.3")))

    for sub in draft.sub_orders:
        assert sub.vendor_net + sub.commission == sub.subtotal
    assert sum(sub.subtotal for sub in draft.sub_orders) == draft.total


@pytest.mark.unit
def test_vendor_override_replaces_default_rate():
    policy = CommissionPolicy(
        default_rate=Decimal("10"),
        overrides={V2: CommissionTerms(CommissionType.PERCENTAGE, Decimal("2.5"))},
    )

    draft = split_order(
        "buyer-1", "key", _snapshot(_line(V1, 1_000, 1), _line(V2, 1_000, 1)), policy
    )

    assert [sub.commission for sub in draft.sub_orders] == [100, 25]
    assert draft.sub_orders[1].commission_value == Decimal("2.5")


@pytest.mark.unit
def test_fixed_commission_is_capped_at_subtotal():
    policy = CommissionPolicy(
        default_rate=Decimal("10"),
        overrides={V1: CommissionTerms(CommissionType.FIXED, Decimal("1.000"))},
    )

    small = split_order("buyer-1", "k1", _snapshot(_line(V1, 500, 1)), policy)
    large = split_order("buyer-1", "k2", _snapshot(_line(V1, 5_000, 1)), policy)

    assert (small.sub_orders[0].commission, small.sub_orders[0].vendor_net) == (500, 0)
    assert (large.sub_orders[0].commission, large.sub_orders[0].vendor_net) == (
        1_000,
        4_000,
    )
    assert large.sub_orders[0].commission_type == CommissionType.FIXED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_load_commission_policy_reads_vendor_overrides(db_session):
    custom = VendorFactory.create(
        commission_type=CommissionType.PERCENTAGE,
        commission_value=Decimal("12.5"),
    )
    plain = VendorFactory.create()
    await persist(db_session, custom, plain)

    policy = await load_commission_policy(
        db_session, [custom.id, plain.id], Decimal("5")
    )

    assert policy.terms_for(custom.id).value == Decimal("12.5")
    assert policy.terms_for(plain.id) == CommissionTerms(
        CommissionType.PERCENTAGE, Decimal("5")
    )

"""Sub-order state machine and the derived parent order status.

Sub-order lifecycle::

    created -> awaiting_payment -> paid -> fulfilling -> completed
                                   paid | fulfilling -> cancelled
                                              completed -> refunded

Every transition is a compare-and-set on the current status. Its stock and
ledger effects are written in the same database transaction as the status,
so a transition either happens with all of its effects or not at all.
"""

import uuid
from datetime import timedelta
from typing import Iterable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InvalidTransition,
    PaymentFailed,
    PaymentInProgress,
    UnknownOrder,
    UnknownSubOrder,
)
from libs.common.logging import get_logger
from libs.common.payment_gateway import PaymentGateway
from services.store_service.models import (
    Order,
    OrderStatus,
    SubOrder,
    SubOrderStatus,
)
from services.store_service.services.reservation import ReservedItem, release_stock
from services.wallet_service.services.ledger import (
    record_pending_credit,
    reverse_credit,
    settle_credit,
)
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

TRANSITIONS: dict[SubOrderStatus, frozenset[SubOrderStatus]] = {
    SubOrderStatus.CREATED: frozenset({SubOrderStatus.AWAITING_PAYMENT}),
    SubOrderStatus.AWAITING_PAYMENT: frozenset({SubOrderStatus.PAID}),
    SubOrderStatus.PAID: frozenset(
        {SubOrderStatus.FULFILLING, SubOrderStatus.CANCELLED}
    ),
    SubOrderStatus.FULFILLING: frozenset(
        {SubOrderStatus.COMPLETED, SubOrderStatus.CANCELLED}
    ),
    SubOrderStatus.COMPLETED: frozenset({SubOrderStatus.REFUNDED}),
    SubOrderStatus.CANCELLED: frozenset(),
    SubOrderStatus.REFUNDED: frozenset(),
}

_TIMESTAMPS = {
    SubOrderStatus.PAID: "paid_at",
    SubOrderStatus.COMPLETED: "completed_at",
    SubOrderStatus.CANCELLED: "cancelled_at",
    SubOrderStatus.REFUNDED: "refunded_at",
}

_IN_PROGRESS = {
    SubOrderStatus.CREATED: OrderStatus.CREATED,
    SubOrderStatus.AWAITING_PAYMENT: OrderStatus.AWAITING_PAYMENT,
    SubOrderStatus.PAID: OrderStatus.PAID,
    SubOrderStatus.FULFILLING: OrderStatus.FULFILLING,
}


def can_transition(current: SubOrderStatus, target: SubOrderStatus) -> bool:
    return target in TRANSITIONS[current]


def derive_order_status(statuses: Iterable[SubOrderStatus]) -> OrderStatus:
    """Parent status from its sub-orders.

    ``cancelled`` only when every sub-order is cancelled, ``completed`` only
    when every sub-order is completed or refunded. Sub-orders that all share
    one in-progress status lend it to the parent; any other mix is
    ``partial``.
    """
    distinct = set(statuses)
    if not distinct:
        return OrderStatus.CREATED
    if distinct == {SubOrderStatus.CANCELLED}:
        return OrderStatus.CANCELLED
    if distinct <= {SubOrderStatus.COMPLETED, SubOrderStatus.REFUNDED}:
        return OrderStatus.COMPLETED
    if len(distinct) == 1:
        (only,) = distinct
        if only in _IN_PROGRESS:
            return _IN_PROGRESS[only]
    return OrderStatus.PARTIAL


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise UnknownOrder(order_id)
    return order


async def get_sub_order(db: AsyncSession, sub_order_id: uuid.UUID) -> SubOrder:
    result = await db.execute(
        select(SubOrder)
        .where(SubOrder.id == sub_order_id)
        .execution_options(populate_existing=True)
    )
    sub_order = result.scalar_one_or_none()
    if sub_order is None:
        raise UnknownSubOrder(sub_order_id)
    return sub_order


async def refresh_order_status(db: AsyncSession, order_id: uuid.UUID) -> OrderStatus:
    """Recompute and store the parent status inside the caller's transaction."""
    result = await db.execute(
        select(SubOrder.status).where(SubOrder.order_id == order_id)
    )
    status = derive_order_status(result.scalars().all())
    await db.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(status=status, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return status


async def _apply_effects(
    db: AsyncSession, sub_order: SubOrder, target: SubOrderStatus
) -> None:
    if target == SubOrderStatus.PAID:
        await record_pending_credit(db, sub_order, commit=False)
    elif target == SubOrderStatus.COMPLETED:
        await settle_credit(db, sub_order, commit=False)
    elif target in (SubOrderStatus.CANCELLED, SubOrderStatus.REFUNDED):
        await release_stock(
            db,
            [ReservedItem(line.product_id, line.quantity) for line in sub_order.lines],
            reference_type="sub_order",
            reference_id=sub_order.id,
            commit=False,
        )
        await reverse_credit(db, sub_order, commit=False)


async def transition_sub_order(
    db: AsyncSession,
    sub_order_id: uuid.UUID,
    target: SubOrderStatus,
    *,
    actor: Optional[str] = None,
    commit: bool = True,
) -> SubOrder:
    """Move one sub-order to ``target`` and apply the transition's effects.

    Raises ``InvalidTransition`` without touching anything when the move is
    not allowed from the current status, or when another writer changed the
    status first.
    """
    sub_order = await get_sub_order(db, sub_order_id)
    current = sub_order.status

    if not can_transition(current, target):
        logger.error(
            "Invariant violation: sub-order %s cannot move %s -> %s (actor=%s)",
            sub_order_id,
            current.value,
            target.value,
            actor,
        )
        raise InvalidTransition("sub_order", current, target)

    values = {"status": target, "updated_at": utc_now()}
    if target in _TIMESTAMPS:
        values[_TIMESTAMPS[target]] = utc_now()

    try:
        result = await db.execute(
            update(SubOrder)
            .where(SubOrder.id == sub_order_id, SubOrder.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.error(
                "Invariant violation: sub-order %s left %s before %s could apply",
                sub_order_id,
                current.value,
                target.value,
            )
            raise InvalidTransition("sub_order", current, target)

        await _apply_effects(db, sub_order, target)
        order_status = await refresh_order_status(db, sub_order.order_id)
        if commit:
            await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Sub-order %s %s -> %s by %s (order %s now %s)",
        sub_order_id,
        current.value,
        target.value,
        actor or "system",
        sub_order.order_id,
        order_status.value,
    )
    return await get_sub_order(db, sub_order_id)


# ---------------------------------------------------------------------------
# Payment-gated transitions
# ---------------------------------------------------------------------------

# Longer than the gateway timeout, so a live call never loses its claim
GATEWAY_CLAIM_SECONDS = 60.0


async def _claim(
    db: AsyncSession, model, column: str, row_id: uuid.UUID, lease: float
) -> bool:
    """Compare-and-set ``column`` from empty or expired to a fresh expiry.

    Committed before returning, so the claim is visible to every other
    session before the caller talks to the gateway.
    """
    now = utc_now()
    claimed_until = getattr(model, column)
    result = await db.execute(
        update(model)
        .where(
            model.id == row_id,
            or_(claimed_until.is_(None), claimed_until < now),
        )
        .values({column: now + timedelta(seconds=lease)})
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def _release_claim(
    db: AsyncSession, model, column: str, row_id: uuid.UUID
) -> None:
    await db.execute(
        update(model)
        .where(model.id == row_id)
        .values({column: None})
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def pay_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    gateway: PaymentGateway,
    *,
    claim_lease: float = GATEWAY_CLAIM_SECONDS,
) -> Order:
    """Charge the buyer for every sub-order awaiting payment.

    The order is claimed before the gateway is called, so a concurrent or
    repeated request gets ``PaymentInProgress`` instead of a second charge.
    The gateway is called with no database transaction open. A declined
    charge raises ``PaymentFailed`` and leaves the order as it was.
    """
    await get_order(db, order_id)
    if not await _claim(db, Order, "payment_claimed_until", order_id, claim_lease):
        logger.info("Payment already in progress for order %s", order_id)
        raise PaymentInProgress("order", order_id)

    # Read after claiming so a payment that finished meanwhile is seen
    order = await get_order(db, order_id)
    payable = [
        sub for sub in order.sub_orders if sub.status == SubOrderStatus.AWAITING_PAYMENT
    ]
    if not payable:
        await _release_claim(db, Order, "payment_claimed_until", order_id)
        raise InvalidTransition("order", order.status, OrderStatus.PAID)

    amount = sum(sub.subtotal for sub in payable)
    await db.commit()

    result = await gateway.charge(order.id, amount)
    if not result.success:
        logger.warning(
            "Charge of %d declined for order %s: %s", amount, order_id, result.reason
        )
        await _release_claim(db, Order, "payment_claimed_until", order_id)
        raise PaymentFailed(order.id, result.reason)

    try:
        for sub in payable:
            await transition_sub_order(
                db, sub.id, SubOrderStatus.PAID, actor="payment", commit=False
            )
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(
                payment_reference=result.reference,
                paid_at=utc_now(),
                payment_claimed_until=None,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        # Money moved but the order did not; the claim stays until it expires
        logger.exception(
            "Order %s charged (ref=%s) but could not be marked paid",
            order_id,
            result.reference,
        )
        await db.rollback()
        raise

    logger.info(
        "Order %s paid: %d fils, reference %s", order_id, amount, result.reference
    )
    return await get_order(db, order_id)


async def refund_sub_order(
    db: AsyncSession,
    sub_order_id: uuid.UUID,
    gateway: PaymentGateway,
    *,
    actor: Optional[str] = None,
    claim_lease: float = GATEWAY_CLAIM_SECONDS,
) -> SubOrder:
    """Refund a completed sub-order's subtotal to the buyer.

    Claimed like :func:`pay_order`, so the buyer is refunded at most once.
    """
    await get_sub_order(db, sub_order_id)
    if not await _claim(
        db, SubOrder, "refund_claimed_until", sub_order_id, claim_lease
    ):
        logger.info("Refund already in progress for sub-order %s", sub_order_id)
        raise PaymentInProgress("sub_order", sub_order_id)

    sub_order = await get_sub_order(db, sub_order_id)
    if not can_transition(sub_order.status, SubOrderStatus.REFUNDED):
        logger.error(
            "Invariant violation: refund requested for sub-order %s in %s",
            sub_order_id,
            sub_order.status.value,
        )
        await _release_claim(db, SubOrder, "refund_claimed_until", sub_order_id)
        raise InvalidTransition("sub_order", sub_order.status, SubOrderStatus.REFUNDED)

    await db.commit()
    result = await gateway.refund(sub_order.order_id, sub_order.subtotal)
    if not result.success:
        logger.warning(
            "Refund of %d declined for sub-order %s: %s",
            sub_order.subtotal,
            sub_order_id,
            result.reason,
        )
        await _release_claim(db, SubOrder, "refund_claimed_until", sub_order_id)
        raise PaymentFailed(sub_order.order_id, result.reason)

    try:
        return await transition_sub_order(
            db, sub_order_id, SubOrderStatus.REFUNDED, actor=actor
        )
    except Exception:
        # Money went back but the sub-order did not; the claim stays until it expires
        logger.exception(
            "Sub-order %s refunded (ref=%s) but could not be marked refunded",
            sub_order_id,
            result.reference,
        )
        raise

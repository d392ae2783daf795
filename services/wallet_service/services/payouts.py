"""Vendor payout requests.

pending -> approved -> paid, with pending|approved -> rejected. Only a paid
payout touches the ledger, as one ``payout`` transaction of ``-amount``.
"""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import InsufficientBalance, InvalidTransition, UnknownPayout
from libs.common.logging import get_logger
from services.wallet_service.models import (
    PayoutRequest,
    PayoutStatus,
    TransactionKind,
)
from services.wallet_service.services.ledger import append_transaction, get_balance
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAYOUT_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.APPROVED, PayoutStatus.REJECTED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PAID, PayoutStatus.REJECTED}),
    PayoutStatus.PAID: frozenset(),
    PayoutStatus.REJECTED: frozenset(),
}

_OPEN = (PayoutStatus.PENDING, PayoutStatus.APPROVED)


async def get_payout(db: AsyncSession, payout_id: uuid.UUID) -> PayoutRequest:
    result = await db.execute(select(PayoutRequest).where(PayoutRequest.id == payout_id))
    payout = result.scalar_one_or_none()
    if payout is None:
        raise UnknownPayout(payout_id)
    return payout


async def list_payouts(
    db: AsyncSession,
    vendor_id: Optional[uuid.UUID] = None,
    status: Optional[PayoutStatus] = None,
) -> list[PayoutRequest]:
    query = select(PayoutRequest).order_by(PayoutRequest.created_at.desc())
    if vendor_id is not None:
        query = query.where(PayoutRequest.vendor_id == vendor_id)
    if status is not None:
        query = query.where(PayoutRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _open_amount(db: AsyncSession, vendor_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(PayoutRequest.amount), 0)).where(
            PayoutRequest.vendor_id == vendor_id,
            PayoutRequest.status.in_(_OPEN),
        )
    )
    return int(result.scalar_one())


async def request_payout(
    db: AsyncSession,
    *,
    vendor_id: uuid.UUID,
    amount: int,
    notes: Optional[str] = None,
) -> PayoutRequest:
    """Open a payout request against the vendor's available balance.

    Requests already open count against the balance so a vendor cannot ask
    for the same money twice.
    """
    balance = await get_balance(db, vendor_id)
    requestable = balance.available - await _open_amount(db, vendor_id)
    if amount > requestable:
        raise InsufficientBalance(vendor_id, amount, max(requestable, 0))

    payout = PayoutRequest(vendor_id=vendor_id, amount=amount, notes=notes)
    db.add(payout)
    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s requested by vendor %s for %d (available=%d)",
        payout.id,
        vendor_id,
        amount,
        balance.available,
    )
    return payout


async def _move(
    db: AsyncSession,
    payout: PayoutRequest,
    target: PayoutStatus,
    processed_by: str,
    notes: Optional[str] = None,
) -> None:
    """Compare-and-set the payout status inside the caller's transaction."""
    current = payout.status
    if target not in PAYOUT_TRANSITIONS[current]:
        raise InvalidTransition("payout", current, target)

    values = {
        "status": target,
        "processed_by": processed_by,
        "processed_at": utc_now(),
    }
    if notes is not None:
        values["notes"] = notes
    result = await db.execute(
        update(PayoutRequest)
        .where(PayoutRequest.id == payout.id, PayoutRequest.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidTransition("payout", current, target)


async def approve_payout(
    db: AsyncSession, payout_id: uuid.UUID, *, processed_by: str
) -> PayoutRequest:
    payout = await get_payout(db, payout_id)
    await _move(db, payout, PayoutStatus.APPROVED, processed_by)
    await db.commit()
    await db.refresh(payout)
    logger.info("Payout %s approved by %s", payout_id, processed_by)
    return payout


async def reject_payout(
    db: AsyncSession,
    payout_id: uuid.UUID,
    *,
    processed_by: str,
    notes: Optional[str] = None,
) -> PayoutRequest:
    payout = await get_payout(db, payout_id)
    await _move(db, payout, PayoutStatus.REJECTED, processed_by, notes)
    await db.commit()
    await db.refresh(payout)
    logger.info("Payout %s rejected by %s", payout_id, processed_by)
    return payout


async def mark_payout_paid(
    db: AsyncSession, payout_id: uuid.UUID, *, processed_by: str
) -> PayoutRequest:
    """Record the money as sent: status change and ledger debit in one commit."""
    payout = await get_payout(db, payout_id)
    balance = await get_balance(db, payout.vendor_id)
    if payout.amount > balance.available:
        raise InsufficientBalance(payout.vendor_id, payout.amount, balance.available)

    await _move(db, payout, PayoutStatus.PAID, processed_by)
    txn = await append_transaction(
        db,
        vendor_id=payout.vendor_id,
        sub_order_id=None,
        amount=-payout.amount,
        kind=TransactionKind.PAYOUT,
        idempotency_key=f"payout-{payout.id}",
        description=f"Payout {payout.id}",
        commit=False,
    )
    await db.execute(
        update(PayoutRequest)
        .where(PayoutRequest.id == payout.id)
        .values(transaction_id=txn.id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s paid to vendor %s (%d) by %s",
        payout_id,
        payout.vendor_id,
        payout.amount,
        processed_by,
    )
    return payout

"""Vendor earnings ledger: append-only transactions and balances derived from them.

The transaction log is the only place money is recorded. Balances are never
stored; every read aggregates the log:

* pending   = pending credits not yet settled or reversed
* available = settled credits, minus every reversal, minus payouts

A reversal of a credit that was still pending therefore drives ``available``
below zero until later settlements cover it.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from libs.common.errors import UnknownSubOrder
from libs.common.logging import get_logger
from services.wallet_service.models import TransactionKind, WalletTransaction
from sqlalchemy import Uuid, column, func, select, table
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

logger = get_logger(__name__)

# Reference to the store's sub-order table without importing store models.
_sub_orders = table(
    "store_sub_orders",
    column("id", Uuid),
    column("vendor_id", Uuid),
)

# Kinds whose amounts count towards the available balance
_AVAILABLE_KINDS = (
    TransactionKind.SETTLED_CREDIT,
    TransactionKind.REVERSAL,
    TransactionKind.PAYOUT,
)


@dataclass(frozen=True)
class WalletBalance:
    vendor_id: uuid.UUID
    pending: int
    available: int

    @property
    def total(self) -> int:
        return self.pending + self.available


@dataclass(frozen=True)
class ReconciliationReport:
    vendor_id: uuid.UUID
    ledger: WalletBalance
    aggregate: WalletBalance
    transaction_count: int

    @property
    def balanced(self) -> bool:
        return self.ledger == self.aggregate


def _key(sub_order_id: uuid.UUID, kind: TransactionKind) -> str:
    return f"sub-order-{sub_order_id}-{kind.value}"


# ---------------------------------------------------------------------------
# Append
# ---------------------------------------------------------------------------


async def get_transaction_by_key(
    db: AsyncSession, idempotency_key: str
) -> Optional[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction).where(
            WalletTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


async def append_transaction(
    db: AsyncSession,
    *,
    vendor_id: uuid.UUID,
    sub_order_id: Optional[uuid.UUID],
    amount: int,
    kind: TransactionKind,
    idempotency_key: str,
    description: str,
    related_transaction_id: Optional[uuid.UUID] = None,
    commit: bool = True,
) -> WalletTransaction:
    """Append one ledger row.

    1. Idempotency check: an existing row for the key is returned unchanged
    2. Referenced sub-order must exist (``UnknownSubOrder`` otherwise)
    3. Insert and flush so the same unit of work can read it back
    4. Commit unless the caller owns the transaction
    """
    existing = await get_transaction_by_key(db, idempotency_key)
    if existing:
        logger.info(
            "Idempotent replay for key=%s -> txn=%s", idempotency_key, existing.id
        )
        return existing

    if sub_order_id is not None:
        found = await db.execute(
            select(_sub_orders.c.id).where(_sub_orders.c.id == sub_order_id)
        )
        if found.first() is None:
            raise UnknownSubOrder(sub_order_id)
    elif kind != TransactionKind.PAYOUT:
        raise UnknownSubOrder(sub_order_id)

    txn = WalletTransaction(
        vendor_id=vendor_id,
        sub_order_id=sub_order_id,
        idempotency_key=idempotency_key,
        kind=kind,
        amount=amount,
        related_transaction_id=related_transaction_id,
        description=description,
    )
    db.add(txn)
    await db.flush()

    if commit:
        await db.commit()

    logger.info(
        "Ledger %s %d for vendor %s (sub_order=%s, key=%s)",
        kind.value,
        amount,
        vendor_id,
        sub_order_id,
        idempotency_key,
    )
    return txn


# ---------------------------------------------------------------------------
# Sub-order helpers
# ---------------------------------------------------------------------------


async def record_pending_credit(
    db: AsyncSession, sub_order, *, commit: bool = True
) -> WalletTransaction:
    """Credit the vendor net of a sub-order as pending. Safe to call twice."""
    return await append_transaction(
        db,
        vendor_id=sub_order.vendor_id,
        sub_order_id=sub_order.id,
        amount=sub_order.vendor_net,
        kind=TransactionKind.PENDING_CREDIT,
        idempotency_key=_key(sub_order.id, TransactionKind.PENDING_CREDIT),
        description=f"Pending earnings for sub-order {sub_order.id}",
        commit=commit,
    )


async def settle_credit(
    db: AsyncSession, sub_order, *, commit: bool = True
) -> WalletTransaction:
    """Mark the pending credit of a sub-order as eligible for payout."""
    pending = await record_pending_credit(db, sub_order, commit=False)
    return await append_transaction(
        db,
        vendor_id=sub_order.vendor_id,
        sub_order_id=sub_order.id,
        amount=pending.amount,
        kind=TransactionKind.SETTLED_CREDIT,
        idempotency_key=_key(sub_order.id, TransactionKind.SETTLED_CREDIT),
        related_transaction_id=pending.id,
        description=f"Settled earnings for sub-order {sub_order.id}",
        commit=commit,
    )


async def reverse_credit(
    db: AsyncSession, sub_order, *, commit: bool = True
) -> Optional[WalletTransaction]:
    """Offset whatever credit is outstanding for a sub-order.

    A settled credit is reversed when there is one, otherwise the pending
    credit. Returns ``None`` when nothing was ever credited.
    """
    settled = await get_transaction_by_key(
        db, _key(sub_order.id, TransactionKind.SETTLED_CREDIT)
    )
    target = settled or await get_transaction_by_key(
        db, _key(sub_order.id, TransactionKind.PENDING_CREDIT)
    )
    if target is None:
        logger.warning("No credit to reverse for sub-order %s", sub_order.id)
        return None

    return await append_transaction(
        db,
        vendor_id=sub_order.vendor_id,
        sub_order_id=sub_order.id,
        amount=-target.amount,
        kind=TransactionKind.REVERSAL,
        idempotency_key=_key(sub_order.id, TransactionKind.REVERSAL),
        related_transaction_id=target.id,
        description=f"Reversal of {target.kind.value} for sub-order {sub_order.id}",
        commit=commit,
    )


# ---------------------------------------------------------------------------
# Balances (read-only)
# ---------------------------------------------------------------------------


async def get_balance(db: AsyncSession, vendor_id: uuid.UUID) -> WalletBalance:
    """Aggregate the log into pending and available balances."""
    offset = aliased(WalletTransaction)
    pending_stmt = select(
        func.coalesce(func.sum(WalletTransaction.amount), 0)
    ).where(
        WalletTransaction.vendor_id == vendor_id,
        WalletTransaction.kind == TransactionKind.PENDING_CREDIT,
        ~select(offset.id)
        .where(offset.related_transaction_id == WalletTransaction.id)
        .exists(),
    )

    available_stmt = select(
        func.coalesce(func.sum(WalletTransaction.amount), 0)
    ).where(
        WalletTransaction.vendor_id == vendor_id,
        WalletTransaction.kind.in_(_AVAILABLE_KINDS),
    )

    pending = (await db.execute(pending_stmt)).scalar_one()
    available = (await db.execute(available_stmt)).scalar_one()
    return WalletBalance(
        vendor_id=vendor_id, pending=int(pending), available=int(available)
    )


async def list_transactions(
    db: AsyncSession,
    vendor_id: Optional[uuid.UUID] = None,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[WalletTransaction], int]:
    """Ledger rows in ``[start, end)``, oldest first, plus the unpaged count."""
    filters = []
    if vendor_id is not None:
        filters.append(WalletTransaction.vendor_id == vendor_id)
    if start is not None:
        filters.append(WalletTransaction.created_at >= as_utc(start))
    if end is not None:
        filters.append(WalletTransaction.created_at < as_utc(end))

    total = (
        await db.execute(
            select(func.count()).select_from(WalletTransaction).where(*filters)
        )
    ).scalar_one()
    result = await db.execute(
        select(WalletTransaction)
        .where(*filters)
        .order_by(WalletTransaction.created_at, WalletTransaction.id)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total)


async def reconcile(db: AsyncSession, vendor_id: uuid.UUID) -> ReconciliationReport:
    """Replay the raw log in Python and compare it with the SQL aggregate."""
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.vendor_id == vendor_id)
    )
    rows = list(result.scalars().all())
    referenced = {row.related_transaction_id for row in rows}

    pending = 0
    available = 0
    for row in rows:
        if row.kind == TransactionKind.PENDING_CREDIT:
            if row.id not in referenced:
                pending += row.amount
        elif row.kind in _AVAILABLE_KINDS:
            available += row.amount

    ledger = WalletBalance(vendor_id=vendor_id, pending=pending, available=available)
    aggregate = await get_balance(db, vendor_id)
    report = ReconciliationReport(
        vendor_id=vendor_id,
        ledger=ledger,
        aggregate=aggregate,
        transaction_count=len(rows),
    )
    if not report.balanced:
        logger.error(
            "Ledger drift for vendor %s: replay=%s aggregate=%s",
            vendor_id,
            ledger,
            aggregate,
        )
    return report

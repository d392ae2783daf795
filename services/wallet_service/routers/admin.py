"""Admin wallet endpoints: vendor balances, ledger audit and payout processing."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.wallet_service.models import PayoutStatus
from services.wallet_service.schemas import (
    BalanceResponse,
    PayoutRejectRequest,
    PayoutResponse,
    ReconciliationResponse,
    TransactionListResponse,
    TransactionResponse,
)
from services.wallet_service.services.ledger import (
    get_balance,
    list_transactions,
    reconcile,
)
from services.wallet_service.services.payouts import (
    approve_payout,
    list_payouts,
    mark_payout_paid,
    reject_payout,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/wallet", tags=["admin-wallet"])


# ---------------------------------------------------------------------------
# Balances and ledger
# ---------------------------------------------------------------------------


@router.get("/vendors/{vendor_id}", response_model=BalanceResponse)
async def admin_get_vendor_balance(
    vendor_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_balance(db, vendor_id)


@router.get("/vendors/{vendor_id}/reconcile", response_model=ReconciliationResponse)
async def admin_reconcile_vendor(
    vendor_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Replay the vendor's ledger and compare it with the aggregated balance."""
    return await reconcile(db, vendor_id)


@router.get("/transactions", response_model=TransactionListResponse)
async def admin_list_transactions(
    vendor_id: Optional[uuid.UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    rows, total = await list_transactions(
        db, vendor_id, start=start, end=end, skip=skip, limit=limit
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in rows],
        total=total,
        skip=skip,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


@router.get("/payouts", response_model=list[PayoutResponse])
async def admin_list_payouts(
    vendor_id: Optional[uuid.UUID] = None,
    status: Optional[PayoutStatus] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_payouts(db, vendor_id=vendor_id, status=status)


@router.post("/payouts/{payout_id}/approve", response_model=PayoutResponse)
async def admin_approve_payout(
    payout_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await approve_payout(db, payout_id, processed_by=admin.user_id)


@router.post("/payouts/{payout_id}/reject", response_model=PayoutResponse)
async def admin_reject_payout(
    payout_id: uuid.UUID,
    body: Optional[PayoutRejectRequest] = None,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await reject_payout(
        db,
        payout_id,
        processed_by=admin.user_id,
        notes=body.notes if body else None,
    )


@router.post("/payouts/{payout_id}/paid", response_model=PayoutResponse)
async def admin_mark_payout_paid(
    payout_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Record that the money has been sent; debits the vendor's available balance."""
    return await mark_payout_paid(db, payout_id, processed_by=admin.user_id)

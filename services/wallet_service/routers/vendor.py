"""Vendor-facing wallet endpoints: balance, statement and payout requests."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_vendor
from libs.auth.models import AuthUser
from libs.common.currency import to_minor
from libs.db.session import get_async_db
from services.wallet_service.models import PayoutStatus
from services.wallet_service.schemas import (
    BalanceResponse,
    PayoutCreateRequest,
    PayoutResponse,
    TransactionListResponse,
    TransactionResponse,
)
from services.wallet_service.services.ledger import get_balance, list_transactions
from services.wallet_service.services.payouts import list_payouts, request_payout
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/me", response_model=BalanceResponse)
async def get_my_balance(
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    """Pending and available earnings, derived from the ledger."""
    return await get_balance(db, current_user.vendor_id)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_my_transactions(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    """Statement of ledger entries in ``[start, end)``."""
    rows, total = await list_transactions(
        db, current_user.vendor_id, start=start, end=end, skip=skip, limit=limit
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in rows],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/payouts", response_model=PayoutResponse, status_code=201)
async def create_payout_request(
    body: PayoutCreateRequest,
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    return await request_payout(
        db,
        vendor_id=current_user.vendor_id,
        amount=to_minor(body.amount),
        notes=body.notes,
    )


@router.get("/payouts", response_model=list[PayoutResponse])
async def get_my_payouts(
    status: Optional[PayoutStatus] = None,
    current_user: AuthUser = Depends(require_vendor),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_payouts(db, vendor_id=current_user.vendor_id, status=status)

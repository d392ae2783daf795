"""Ledger transaction response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_major
from pydantic import BaseModel, ConfigDict, field_validator
from services.wallet_service.models.enums import TransactionKind


class TransactionResponse(BaseModel):
    id: uuid.UUID
    vendor_id: uuid.UUID
    sub_order_id: Optional[uuid.UUID] = None
    idempotency_key: str
    kind: TransactionKind
    amount: Decimal
    related_transaction_id: Optional[uuid.UUID] = None
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("amount", mode="before")
    @classmethod
    def convert_amount_to_dinar(cls, value):
        if isinstance(value, int):
            return to_major(value)
        return value


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    skip: int
    limit: int

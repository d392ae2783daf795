"""Payout request schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_major
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.wallet_service.models.enums import PayoutStatus


class PayoutCreateRequest(BaseModel):
    """Amount in dinar, e.g. ``"12.500"``."""

    amount: Decimal = Field(..., gt=0, decimal_places=3)
    notes: Optional[str] = Field(None, max_length=500)


class PayoutRejectRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class PayoutResponse(BaseModel):
    id: uuid.UUID
    vendor_id: uuid.UUID
    amount: Decimal
    status: PayoutStatus
    notes: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    transaction_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("amount", mode="before")
    @classmethod
    def convert_amount_to_dinar(cls, value):
        if isinstance(value, int):
            return to_major(value)
        return value

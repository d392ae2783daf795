"""Vendor balance schemas."""

import uuid
from decimal import Decimal

from libs.common.currency import to_major
from pydantic import BaseModel, ConfigDict, field_validator


class BalanceResponse(BaseModel):
    vendor_id: uuid.UUID
    pending: Decimal
    available: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)

    @field_validator("pending", "available", "total", mode="before")
    @classmethod
    def convert_to_dinar(cls, value):
        if isinstance(value, int):
            return to_major(value)
        return value


class ReconciliationResponse(BaseModel):
    """Admin audit: the replayed log against the SQL aggregate."""

    vendor_id: uuid.UUID
    ledger: BalanceResponse
    aggregate: BalanceResponse
    transaction_count: int
    balanced: bool

    model_config = ConfigDict(from_attributes=True)

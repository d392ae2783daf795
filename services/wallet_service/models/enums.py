"""Enums for the Wallet Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class TransactionKind(str, enum.Enum):
    PENDING_CREDIT = "pending_credit"
    SETTLED_CREDIT = "settled_credit"
    REVERSAL = "reversal"
    PAYOUT = "payout"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"

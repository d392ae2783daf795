"""Wallet Service models package.

Re-exports every model and enum so SQLAlchemy's mapper registry sees each
model class on import.
"""

from services.wallet_service.models.enums import (  # noqa: F401
    PayoutStatus,
    TransactionKind,
)
from services.wallet_service.models.payout import PayoutRequest  # noqa: F401
from services.wallet_service.models.transaction import WalletTransaction  # noqa: F401

__all__ = [
    "PayoutRequest",
    "PayoutStatus",
    "TransactionKind",
    "WalletTransaction",
]

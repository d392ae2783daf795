"""Wallet Service schemas package.

Re-exports all schemas so that:
  - ``from services.wallet_service.schemas import BalanceResponse`` works
  - Router files need no knowledge of the module split

IMPORTANT: Every schema class must be listed here.
When adding a new schema, add its import and __all__ entry.
"""

from services.wallet_service.schemas.balance import (  # noqa: F401
    BalanceResponse,
    ReconciliationResponse,
)
from services.wallet_service.schemas.payout import (  # noqa: F401
    PayoutCreateRequest,
    PayoutRejectRequest,
    PayoutResponse,
)
from services.wallet_service.schemas.transaction import (  # noqa: F401
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    "BalanceResponse",
    "PayoutCreateRequest",
    "PayoutRejectRequest",
    "PayoutResponse",
    "ReconciliationResponse",
    "TransactionListResponse",
    "TransactionResponse",
]

"""WalletTransaction model: immutable vendor earnings ledger."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.wallet_service.models.enums import TransactionKind, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class WalletTransaction(Base):
    """Append-only ledger of vendor earnings. Source of truth for balances.

    Rows are never updated. A settlement or reversal is a new row whose
    ``related_transaction_id`` points at the credit it settles or offsets.
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vendor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    # Null only for payouts, which are not tied to a sale
    sub_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True, index=True
    )
    idempotency_key: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(
            TransactionKind,
            name="wallet_transaction_kind_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    # Signed, in fils: credits positive, reversals and payouts negative
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    related_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("wallet_transactions.id"), nullable=True, index=True
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "(kind IN ('pending_credit', 'settled_credit') AND amount >= 0)"
            " OR (kind IN ('reversal', 'payout') AND amount <= 0)",
            name="amount_sign_matches_kind",
        ),
        CheckConstraint(
            "sub_order_id IS NOT NULL OR kind = 'payout'",
            name="sale_transactions_have_sub_order",
        ),
        Index("ix_wallet_transactions_vendor_created", "vendor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WalletTransaction {self.id} {self.kind.value} {self.amount}>"

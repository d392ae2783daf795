"""Split a priced cart into one sub-order per vendor.

Pure computation. Commission is applied once per sub-order, rounded half-up
to the fils, so ``vendor_net + commission == subtotal`` holds exactly.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from libs.common.currency import apply_rate, to_minor
from services.store_service.models import CommissionType, Vendor
from services.store_service.services.snapshot import CartSnapshot, PricedLine
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class CommissionTerms:
    commission_type: CommissionType
    value: Decimal

    def commission_for(self, subtotal: int) -> int:
        if self.commission_type == CommissionType.FIXED:
            # A flat fee never exceeds what the vendor sold
            return min(to_minor(self.value), subtotal)
        return apply_rate(subtotal, self.value)


@dataclass(frozen=True)
class CommissionPolicy:
    """Platform rate plus per-vendor overrides."""

    default_rate: Decimal
    overrides: dict[uuid.UUID, CommissionTerms] = field(default_factory=dict)

    def terms_for(self, vendor_id: uuid.UUID) -> CommissionTerms:
        override = self.overrides.get(vendor_id)
        if override is not None:
            return override
        return CommissionTerms(CommissionType.PERCENTAGE, self.default_rate)


async def load_commission_policy(
    db: AsyncSession, vendor_ids: Iterable[uuid.UUID], default_rate: Decimal
) -> CommissionPolicy:
    """Build a policy from the vendors' stored commission settings."""
    ids = set(vendor_ids)
    if not ids:
        return CommissionPolicy(default_rate=default_rate)

    result = await db.execute(
        select(Vendor.id, Vendor.commission_type, Vendor.commission_value).where(
            Vendor.id.in_(ids),
            Vendor.commission_type.is_not(None),
            Vendor.commission_value.is_not(None),
        )
    )
    overrides = {
        vendor_id: CommissionTerms(commission_type, Decimal(value))
        for vendor_id, commission_type, value in result.all()
    }
    return CommissionPolicy(default_rate=default_rate, overrides=overrides)


@dataclass(frozen=True)
class SubOrderDraft:
    vendor_id: uuid.UUID
    position: int
    lines: tuple[PricedLine, ...]
    subtotal: int
    commission: int
    commission_type: CommissionType
    commission_value: Decimal

    @property
    def vendor_net(self) -> int:
        return self.subtotal - self.commission


@dataclass(frozen=True)
class OrderDraft:
    buyer_id: str
    idempotency_key: str
    sub_orders: tuple[SubOrderDraft, ...]

    @property
    def total(self) -> int:
        return sum(sub.subtotal for sub in self.sub_orders)


def split_order(
    buyer_id: str,
    idempotency_key: str,
    snapshot: CartSnapshot,
    policy: CommissionPolicy,
) -> OrderDraft:
    """Group lines by vendor in order of first appearance."""
    groups: dict[uuid.UUID, list[PricedLine]] = {}
    for line in snapshot.lines:
        groups.setdefault(line.vendor_id, []).append(line)

    drafts = []
    for position, (vendor_id, lines) in enumerate(groups.items()):
        subtotal = sum(line.line_total for line in lines)
        terms = policy.terms_for(vendor_id)
        drafts.append(
            SubOrderDraft(
                vendor_id=vendor_id,
                position=position,
                lines=tuple(lines),
                subtotal=subtotal,
                commission=terms.commission_for(subtotal),
                commission_type=terms.commission_type,
                commission_value=terms.value,
            )
        )

    return OrderDraft(
        buyer_id=buyer_id,
        idempotency_key=idempotency_key,
        sub_orders=tuple(drafts),
    )

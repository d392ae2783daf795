"""Checkout orchestration.

lock -> idempotency check -> snapshot -> reserve -> split -> persist -> unlock

Stock is reserved before anything is persisted. Whatever goes wrong after the
reservation (a database error, a lost idempotency race, the task being
cancelled) the reserved stock is released before the error leaves here.
"""

import asyncio
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.config import Settings, get_settings
from libs.common.errors import IdempotencyKeyReused
from libs.common.logging import get_logger
from libs.common.payment_gateway import PaymentGateway
from libs.db.session import shielded_commit
from services.store_service.models import (
    Order,
    OrderStatus,
    SubOrder,
    SubOrderLine,
    SubOrderStatus,
)
from services.store_service.services.catalog import SqlCatalog
from services.store_service.services.checkout_lock import checkout_lock
from services.store_service.services.order_state import (
    get_order,
    pay_order,
    transition_sub_order,
)
from services.store_service.services.reservation import (
    Reservation,
    release_stock,
    reserve_stock,
)
from services.store_service.services.snapshot import CartLine, build_snapshot
from services.store_service.services.splitter import (
    OrderDraft,
    load_commission_policy,
    split_order,
)
from services.wallet_service.services.ledger import record_pending_credit
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutConfig:
    commission_percent: Decimal
    lock_timeout: float = 3.0
    lock_lease: float = 10.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CheckoutConfig":
        settings = settings or get_settings()
        return cls(
            commission_percent=settings.PLATFORM_COMMISSION_PERCENT,
            lock_timeout=settings.CHECKOUT_LOCK_TIMEOUT_SECONDS,
            lock_lease=settings.CHECKOUT_LOCK_LEASE_SECONDS,
        )


class CheckoutService:
    def __init__(
        self, config: CheckoutConfig, gateway: Optional[PaymentGateway] = None
    ):
        self.config = config
        self.gateway = gateway

    async def checkout(
        self,
        db: AsyncSession,
        buyer_id: str,
        lines: Sequence[CartLine],
        idempotency_key: str,
    ) -> Order:
        """Place an order for ``lines``, or return the one already placed for the key."""
        async with checkout_lock(
            db,
            buyer_id,
            timeout=self.config.lock_timeout,
            lease=self.config.lock_lease,
        ):
            existing = await self._find_existing(db, buyer_id, idempotency_key)
            if existing is not None:
                logger.info(
                    "Idempotent checkout replay for key=%s -> order %s",
                    idempotency_key,
                    existing.id,
                )
                return existing

            snapshot = await build_snapshot(SqlCatalog(db), buyer_id, lines)
            order_id = uuid.uuid4()
            reservation = await reserve_stock(db, snapshot, reference_id=order_id)

            try:
                policy = await load_commission_policy(
                    db,
                    {line.vendor_id for line in snapshot.lines},
                    self.config.commission_percent,
                )
                draft = split_order(buyer_id, idempotency_key, snapshot, policy)
                order = await self._persist(db, order_id, draft)
            except IntegrityError:
                await db.rollback()
                await self._release(db, reservation, "lost idempotency race")
                winner = await self._find_existing(db, buyer_id, idempotency_key)
                if winner is None:
                    raise
                return winner
            except (Exception, asyncio.CancelledError):
                await db.rollback()
                if await self._was_persisted(db, order_id):
                    # The stock now belongs to the order
                    logger.warning(
                        "Checkout %s interrupted after its order was committed",
                        order_id,
                    )
                else:
                    await self._release(db, reservation, "persistence failed")
                raise

        logger.info(
            "Checkout %s for buyer %s: %d sub-order(s), total %d",
            order.order_number,
            buyer_id,
            len(order.sub_orders),
            order.total,
        )
        return order

    async def pay(self, db: AsyncSession, order_id: uuid.UUID) -> Order:
        if self.gateway is None:
            raise RuntimeError("CheckoutService has no payment gateway configured")
        return await pay_order(db, order_id, self.gateway)

    async def _find_existing(
        self, db: AsyncSession, buyer_id: str, idempotency_key: str
    ) -> Optional[Order]:
        result = await db.execute(
            select(Order.id, Order.buyer_id).where(
                Order.idempotency_key == idempotency_key
            )
        )
        row = result.first()
        if row is None:
            return None
        if row.buyer_id != buyer_id:
            raise IdempotencyKeyReused(idempotency_key)
        return await get_order(db, row.id)

    async def _was_persisted(self, db: AsyncSession, order_id: uuid.UUID) -> bool:
        result = await db.execute(select(Order.id).where(Order.id == order_id))
        return result.first() is not None

    async def _persist(
        self, db: AsyncSession, order_id: uuid.UUID, draft: OrderDraft
    ) -> Order:
        db.add(
            Order(
                id=order_id,
                order_number=Order.generate_order_number(),
                buyer_id=draft.buyer_id,
                idempotency_key=draft.idempotency_key,
                total=draft.total,
                status=OrderStatus.CREATED,
            )
        )
        sub_orders = []
        for sub_draft in draft.sub_orders:
            sub_order = SubOrder(
                id=uuid.uuid4(),
                order_id=order_id,
                vendor_id=sub_draft.vendor_id,
                position=sub_draft.position,
                subtotal=sub_draft.subtotal,
                commission=sub_draft.commission,
                vendor_net=sub_draft.vendor_net,
                commission_type=sub_draft.commission_type,
                commission_value=sub_draft.commission_value,
                status=SubOrderStatus.CREATED,
            )
            db.add(sub_order)
            for position, line in enumerate(sub_draft.lines):
                db.add(
                    SubOrderLine(
                        sub_order_id=sub_order.id,
                        product_id=line.product_id,
                        position=position,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        line_total=line.line_total,
                    )
                )
            sub_orders.append(sub_order)
        await db.flush()

        for sub_order in sub_orders:
            await transition_sub_order(
                db,
                sub_order.id,
                SubOrderStatus.AWAITING_PAYMENT,
                actor="checkout",
                commit=False,
            )
            await record_pending_credit(db, sub_order, commit=False)

        await shielded_commit(db)
        return await get_order(db, order_id)

    async def _release(
        self, db: AsyncSession, reservation: Reservation, reason: str
    ) -> None:
        logger.warning(
            "Releasing reservation for checkout %s: %s",
            reservation.reference_id,
            reason,
        )
        await release_stock(
            db,
            reversed(reservation.items),
            reference_type="compensation",
            reference_id=reservation.reference_id,
        )

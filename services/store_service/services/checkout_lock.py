"""Per-buyer checkout lease stored in ``store_checkout_locks``.

One row per buyer holding a random token and an expiry. A holder that dies
leaves a row that any later attempt may take over once it has expired, so a
crashed checkout never locks a buyer out for longer than one lease.
"""

import asyncio
import secrets
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from libs.common.datetime_utils import utc_now
from libs.common.errors import CheckoutInProgress
from libs.common.logging import get_logger
from services.store_service.models import CheckoutLock
from sqlalchemy import delete, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

POLL_INTERVAL_SECONDS = 0.05


async def _try_acquire(
    db: AsyncSession, buyer_id: str, token: str, lease: float
) -> bool:
    now = utc_now()
    expires_at = now + timedelta(seconds=lease)

    taken = await db.execute(
        update(CheckoutLock)
        .where(CheckoutLock.buyer_id == buyer_id, CheckoutLock.expires_at < now)
        .values(token=token, expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    if taken.rowcount == 1:
        await db.commit()
        logger.warning("Took over expired checkout lease for buyer %s", buyer_id)
        return True

    try:
        await db.execute(
            insert(CheckoutLock).values(
                buyer_id=buyer_id, token=token, expires_at=expires_at
            )
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True


async def release_checkout_lock(db: AsyncSession, buyer_id: str, token: str) -> None:
    await db.execute(
        delete(CheckoutLock)
        .where(CheckoutLock.buyer_id == buyer_id, CheckoutLock.token == token)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


@asynccontextmanager
async def checkout_lock(
    db: AsyncSession, buyer_id: str, *, timeout: float, lease: float
) -> AsyncIterator[str]:
    """Hold the buyer's checkout lease for the duration of the block.

    Polls until ``timeout`` seconds have passed, then raises
    ``CheckoutInProgress``. Yields the lease token.
    """
    token = secrets.token_hex(16)
    deadline = time.monotonic() + timeout

    while not await _try_acquire(db, buyer_id, token, lease):
        if time.monotonic() >= deadline:
            logger.info("Checkout lease busy for buyer %s", buyer_id)
            raise CheckoutInProgress(buyer_id)
        await asyncio.sleep(POLL_INTERVAL_SECONDS)

    try:
        yield token
    except BaseException:
        await db.rollback()
        raise
    finally:
        try:
            await release_checkout_lock(db, buyer_id, token)
        except Exception:
            # The lease expires on its own
            logger.exception("Failed to release checkout lease for buyer %s", buyer_id)

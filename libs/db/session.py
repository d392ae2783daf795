import asyncio
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.config import AsyncSessionLocal


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.

    Services commit their own units of work; a request that fails midway has
    whatever it left pending rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def shielded_commit(db: AsyncSession) -> None:
    """
    Commit so that cancelling the caller cannot leave the outcome unknown.

    The commit runs to completion even when the awaiting task is cancelled.
    A ``CancelledError`` raised from here therefore means the transaction is
    durable; any other error means it is not.
    """
    commit = asyncio.ensure_future(db.commit())
    try:
        await asyncio.shield(commit)
    except asyncio.CancelledError:
        await commit
        raise

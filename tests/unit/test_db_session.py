"""Unit tests for the session helpers."""

import asyncio

import pytest
from libs.db.session import shielded_commit


class _SlowSession:
    """Stands in for an AsyncSession whose commit waits for a signal."""

    def __init__(self, error=None):
        self.release = asyncio.Event()
        self.error = error
        self.committed = False

    async def commit(self):
        await self.release.wait()
        if self.error is not None:
            raise self.error
        self.committed = True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancelled_caller_still_finishes_the_commit():
    session = _SlowSession()
    task = asyncio.create_task(shielded_commit(session))
    await asyncio.sleep(0)

    task.cancel()
    await asyncio.sleep(0)
    assert not task.done()

    session.release.set()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert session.committed


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_commit_is_reported_as_is():
    session = _SlowSession(error=RuntimeError("disk full"))
    session.release.set()

    with pytest.raises(RuntimeError, match="disk full"):
        await shielded_commit(session)
    assert not session.committed

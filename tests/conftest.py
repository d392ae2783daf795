"""Shared fixtures: a throwaway SQLite database per test and in-process apps."""

import asyncio
import os
import tempfile
import uuid
from contextlib import contextmanager
from typing import AsyncGenerator, Optional

# Settings are read at import time by libs.db.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), "motorbuy-test-default.db"
)
os.environ.setdefault("ENVIRONMENT", "local")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.payment_gateway import PaymentResult, get_payment_gateway
from libs.db.base import Base
from libs.db.session import get_async_db

# Register every table on the metadata
from services.store_service import models as _store_models  # noqa: F401
from services.wallet_service import models as _wallet_models  # noqa: F401

get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh file-backed SQLite database, so concurrent sessions really contend."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


class FakePaymentGateway:
    """Records calls and answers with a configurable outcome."""

    def __init__(
        self,
        succeed: bool = True,
        reason: Optional[str] = None,
        delay: float = 0.0,
    ):
        self.succeed = succeed
        self.reason = reason
        # Seconds each call takes, to hold a charge open while another runs
        self.delay = delay
        self.charges: list[tuple[uuid.UUID, int]] = []
        self.refunds: list[tuple[uuid.UUID, int]] = []

    def _result(self) -> PaymentResult:
        if self.succeed:
            return PaymentResult(success=True, reference=f"ref-{uuid.uuid4().hex[:10]}")
        return PaymentResult(success=False, reason=self.reason or "card declined")

    async def charge(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        self.charges.append((order_id, amount))
        await asyncio.sleep(self.delay)
        return self._result()

    async def refund(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        self.refunds.append((order_id, amount))
        await asyncio.sleep(self.delay)
        return self._result()


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


def make_buyer_user(user_id: Optional[str] = None) -> AuthUser:
    return AuthUser(
        user_id=user_id or f"buyer-{uuid.uuid4().hex[:8]}",
        email="buyer@example.com",
        role="customer",
    )


DEFAULT_BUYER = make_buyer_user("buyer-default")


def make_vendor_user(vendor_id: uuid.UUID, user_id: Optional[str] = None) -> AuthUser:
    return AuthUser(
        user_id=user_id or f"vendor-{uuid.uuid4().hex[:8]}",
        email="vendor@example.com",
        role="vendor",
        vendor_id=vendor_id,
    )


def make_admin_user() -> AuthUser:
    return AuthUser(user_id="admin-1", email="admin@example.com", role="admin")


@contextmanager
def override_auth(app, user: AuthUser):
    """Temporarily authenticate every request to ``app`` as ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


def _wire(app, session_factory, gateway=None):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: DEFAULT_BUYER
    if gateway is not None:
        app.dependency_overrides[get_payment_gateway] = lambda: gateway


@pytest_asyncio.fixture
async def store_client(session_factory, gateway) -> AsyncGenerator[AsyncClient, None]:
    from services.store_service.app.main import app

    _wire(app, session_factory, gateway)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def wallet_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    from services.wallet_service.app.main import app

    _wire(app, session_factory)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()

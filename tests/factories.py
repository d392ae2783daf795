"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    vendor = VendorFactory.create(store_name="Gulf Tyres")
    product = ProductFactory.create(vendor_id=vendor.id, price=10_000, stock=3)
    await persist(db_session, vendor, product)
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def persist(db, *instances):
    """Add, commit and detach instances, returning them in the order given.

    Detached instances keep their loaded values even when a later call in
    the same session rolls back and expires everything it still tracks.
    """
    db.add_all(instances)
    await db.commit()
    db.expunge_all()
    return instances


# ---------------------------------------------------------------------------
# Store Service
# ---------------------------------------------------------------------------


class VendorFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Vendor

        defaults = {
            "id": _uuid(),
            "owner_user_id": f"owner-{uuid.uuid4().hex[:8]}",
            "store_name": "Test Motors",
            "is_approved": True,
            "commission_type": None,
            "commission_value": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Vendor(**defaults)


class ProductFactory:
    @staticmethod
    def create(vendor_id=None, **overrides):
        from services.store_service.models import Product

        defaults = {
            "id": _uuid(),
            "vendor_id": vendor_id or _uuid(),
            "name": "Brake Pads",
            "description": "Front ceramic brake pads",
            "brand": "Bosch",
            "price": 10_000,  # KD 10.000
            "compare_at_price": None,
            "stock": 10,
            "version": 1,
            "is_active": True,
            "image_urls": ["https://cdn.example.com/brake-pads.jpg"],
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Product(**defaults)


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


async def seed_two_vendor_catalog(db):
    """Two vendors, one product each: KD 10.000 (stock 5) and KD 5.000 (stock 5)."""
    vendor_a = VendorFactory.create(store_name="Vendor A")
    vendor_b = VendorFactory.create(store_name="Vendor B")
    product_a = ProductFactory.create(vendor_id=vendor_a.id, price=10_000, stock=5)
    product_b = ProductFactory.create(
        vendor_id=vendor_b.id, name="Oil Filter", price=5_000, stock=5
    )
    await persist(db, vendor_a, vendor_b, product_a, product_b)
    return vendor_a, vendor_b, product_a, product_b


async def place_order(
    db,
    items,
    *,
    buyer_id="buyer-1",
    idempotency_key=None,
    commission_percent=Decimal("10"),
):
    """Run a checkout for ``[(product, quantity), ...]``."""
    from services.store_service.services.checkout import (
        CheckoutConfig,
        CheckoutService,
    )
    from services.store_service.services.snapshot import CartLine

    service = CheckoutService(
        CheckoutConfig(commission_percent=commission_percent, lock_timeout=10.0)
    )
    lines = [CartLine(product.id, quantity) for product, quantity in items]
    return await service.checkout(
        db, buyer_id, lines, idempotency_key or f"key-{uuid.uuid4().hex}"
    )


async def advance(db, sub_order_id, *statuses):
    """Walk a sub-order through ``statuses`` in order."""
    from services.store_service.services.order_state import transition_sub_order

    sub_order = None
    for status in statuses:
        sub_order = await transition_sub_order(db, sub_order_id, status, actor="test")
    return sub_order

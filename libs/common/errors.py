"""Domain errors shared by the store and wallet services.

Each error carries the HTTP status it maps to so routers never translate by hand;
see :mod:`libs.common.error_handler`.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional


class MarketplaceError(Exception):
    """Base class for every error the core reports to its callers."""

    code = "marketplace_error"
    status_code = 400
    # Integrity errors point at a bug or corrupted state rather than bad input.
    integrity = False

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------


class UnknownProduct(MarketplaceError):
    code = "unknown_product"
    status_code = 404

    def __init__(self, product_id: uuid.UUID):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class InvalidQuantity(MarketplaceError):
    code = "invalid_quantity"
    status_code = 422

    def __init__(self, product_id: uuid.UUID, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            f"Quantity must be positive, got {quantity} for product {product_id}",
            product_id=product_id,
            quantity=quantity,
        )


class EmptyCart(MarketplaceError):
    code = "empty_cart"
    status_code = 422

    def __init__(self) -> None:
        super().__init__("Cart is empty")


class IdempotencyKeyReused(MarketplaceError):
    code = "idempotency_key_reused"
    status_code = 409

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(
            "Idempotency key already used by another buyer",
            idempotency_key=idempotency_key,
        )


# ---------------------------------------------------------------------------
# Transient
# ---------------------------------------------------------------------------


class InsufficientStock(MarketplaceError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: uuid.UUID):
        self.product_id = product_id
        super().__init__(
            f"Not enough stock for product {product_id}", product_id=product_id
        )


class CheckoutInProgress(MarketplaceError):
    code = "checkout_in_progress"
    status_code = 409

    def __init__(self, buyer_id: str):
        self.buyer_id = buyer_id
        super().__init__(
            "Another checkout is already running for this buyer", buyer_id=buyer_id
        )


# ---------------------------------------------------------------------------
# Lookup / integrity
# ---------------------------------------------------------------------------


class UnknownOrder(MarketplaceError):
    code = "unknown_order"
    status_code = 404

    def __init__(self, order_id: uuid.UUID):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class UnknownSubOrder(MarketplaceError):
    code = "unknown_sub_order"
    status_code = 404
    integrity = True

    def __init__(self, sub_order_id: uuid.UUID):
        self.sub_order_id = sub_order_id
        super().__init__(
            f"Sub-order {sub_order_id} not found", sub_order_id=sub_order_id
        )


class InvalidTransition(MarketplaceError):
    code = "invalid_transition"
    status_code = 409
    integrity = True

    def __init__(self, entity: str, current: Any, target: Any):
        self.entity = entity
        self.current = getattr(current, "value", current)
        self.target = getattr(target, "value", target)
        super().__init__(
            f"Cannot move {entity} from {self.current} to {self.target}",
            entity=entity,
            current=self.current,
            target=self.target,
        )


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


class PaymentFailed(MarketplaceError):
    code = "payment_failed"
    status_code = 402

    def __init__(self, order_id: uuid.UUID, reason: Optional[str] = None):
        self.order_id = order_id
        self.reason = reason
        super().__init__(
            f"Payment failed for order {order_id}: {reason or 'declined'}",
            order_id=order_id,
        )


class InsufficientBalance(MarketplaceError):
    code = "insufficient_balance"
    status_code = 409

    def __init__(self, vendor_id: uuid.UUID, requested: int, available: int):
        self.vendor_id = vendor_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Vendor {vendor_id} has {available} fils available, {requested} requested",
            vendor_id=vendor_id,
        )


class UnknownPayout(MarketplaceError):
    code = "unknown_payout"
    status_code = 404

    def __init__(self, payout_id: uuid.UUID):
        self.payout_id = payout_id
        super().__init__(f"Payout request {payout_id} not found", payout_id=payout_id)


class PaymentInProgress(MarketplaceError):
    code = "payment_in_progress"
    status_code = 409

    def __init__(self, entity: str, entity_id: uuid.UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"A gateway call for {entity} {entity_id} is already in progress",
            entity=entity,
            entity_id=entity_id,
        )

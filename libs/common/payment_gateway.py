"""Payment gateway contract used by the order state machine.

The core only needs two capabilities from the gateway: charge a placed order
and refund part of it. Retry and backoff are the gateway's concern, so every
call here is made exactly once and any transport problem is reported as a
failed :class:`PaymentResult`.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from libs.common.config import get_settings
from libs.common.currency import to_major
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of a charge or refund."""

    success: bool
    reference: Optional[str] = None
    reason: Optional[str] = None


class PaymentGateway(Protocol):
    async def charge(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        """Charge ``amount`` fils for ``order_id``."""
        ...

    async def refund(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        """Refund ``amount`` fils against ``order_id``."""
        ...


class HttpPaymentGateway:
    """Async client for the hosted payment gateway."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_URL).rstrip("/")
        self.secret_key = secret_key or settings.PAYMENT_GATEWAY_SECRET_KEY
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS
        self.currency = settings.CURRENCY
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if self.secret_key:
            self._headers["Authorization"] = f"Bearer {self.secret_key}"

    async def _post(self, endpoint: str, payload: dict) -> PaymentResult:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    endpoint, json=payload, headers=self._headers
                )
        except httpx.HTTPError as e:
            logger.warning("Payment gateway unreachable for %s: %s", endpoint, e)
            return PaymentResult(success=False, reason=f"gateway unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success or not data.get("status"):
            reason = data.get("message") or f"HTTP {response.status_code}"
            logger.warning("Payment gateway declined %s: %s", endpoint, reason)
            return PaymentResult(success=False, reason=reason)

        return PaymentResult(success=True, reference=data.get("reference"))

    async def charge(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        return await self._post(
            "/charges",
            {
                "order_id": str(order_id),
                "amount": str(to_major(amount)),
                "currency": self.currency,
            },
        )

    async def refund(self, order_id: uuid.UUID, amount: int) -> PaymentResult:
        return await self._post(
            "/refunds",
            {
                "order_id": str(order_id),
                "amount": str(to_major(amount)),
                "currency": self.currency,
            },
        )


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway."""
    return HttpPaymentGateway()

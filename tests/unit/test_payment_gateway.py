"""Unit tests for the HTTP payment gateway client."""

import json
import uuid

import httpx
import pytest
from libs.common.payment_gateway import HttpPaymentGateway


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url="https://pay.example.com/",
        secret_key="sk_test",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_charge_posts_amount_in_dinar():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": True, "reference": "ch_123"})

    order_id = uuid.uuid4()
    result = await _gateway(handler).charge(order_id, 25_000)

    assert result.success
    assert result.reference == "ch_123"
    assert seen["url"] == "https://pay.example.com/charges"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["body"] == {
        "order_id": str(order_id),
        "amount": "25.000",
        "currency": "KWD",
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_uses_refund_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/refunds"
        return httpx.Response(200, json={"status": True, "reference": "rf_9"})

    result = await _gateway(handler).refund(uuid.uuid4(), 500)

    assert result.success
    assert result.reference == "rf_9"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_declined_charge_is_a_failed_result():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"status": False, "message": "Insufficient funds"})

    result = await _gateway(handler).charge(uuid.uuid4(), 1_000)

    assert not result.success
    assert result.reason == "Insufficient funds"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_json_error_reports_http_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    result = await _gateway(handler).charge(uuid.uuid4(), 1_000)

    assert not result.success
    assert result.reason == "HTTP 503"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_error_is_a_failed_result():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _gateway(handler).charge(uuid.uuid4(), 1_000)

    assert not result.success
    assert "unreachable" in result.reason

# mypy: ignore-errors
# tests/services/test_gateway.py
"""Tests for the payment gateway client."""

from __future__ import annotations

import json

import httpx
import pytest

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import Settings
from billing_core.services.gateway import GatewayClient, GatewayError

ORDER_PAYLOAD = {
    "id": "order_abc",
    "amount": 49_900,
    "currency": "INR",
    "status": "created",
    "receipt": "recharge-1",
    "notes": {"planId": "plan_1"},
}


def _config(**overrides) -> Settings:
    values = {
        "SECRET_KEY": "test-secret-key",
        "RAZORPAY_KEY_ID": "rzp_key",
        "RAZORPAY_KEY_SECRET": "rzp_secret",
        "RAZORPAY_BASE_URL": "https://gateway.test/v1",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_create_order_posts_expected_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ORDER_PAYLOAD)

    client = GatewayClient(_config(), transport=httpx.MockTransport(handler))
    order = await client.create_order(
        amount=49_900, currency="INR", receipt="recharge-1", notes={"planId": "plan_1"}
    )
    await client.close()

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://gateway.test/v1/orders"
    assert request.headers["authorization"].startswith("Basic ")
    assert json.loads(request.content) == {
        "amount": 49_900,
        "currency": "INR",
        "receipt": "recharge-1",
        "notes": {"planId": "plan_1"},
    }
    assert order.id == "order_abc"
    assert order.is_paid is False


@pytest.mark.asyncio
async def test_fetch_order_parses_paid_order() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/orders/order_abc"
        return httpx.Response(200, json={**ORDER_PAYLOAD, "status": "paid"})

    client = GatewayClient(_config(), transport=httpx.MockTransport(handler))
    order = await client.fetch_order("order_abc")

    assert order.is_paid is True
    assert order.amount == 49_900


@pytest.mark.asyncio
async def test_missing_order_maps_to_not_found() -> None:
    client = GatewayClient(
        _config(), transport=httpx.MockTransport(lambda request: httpx.Response(404))
    )

    with pytest.raises(BillingError) as excinfo:
        await client.fetch_order("order_missing")

    assert excinfo.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_server_error_raises_gateway_error() -> None:
    client = GatewayClient(
        _config(), transport=httpx.MockTransport(lambda request: httpx.Response(503))
    )

    with pytest.raises(GatewayError):
        await client.fetch_order("order_abc")


@pytest.mark.asyncio
async def test_transport_failure_raises_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = GatewayClient(_config(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError):
        await client.fetch_order("order_abc")


@pytest.mark.asyncio
async def test_malformed_payload_raises_gateway_error() -> None:
    client = GatewayClient(
        _config(),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "x"})),
    )

    with pytest.raises(GatewayError):
        await client.fetch_order("x")


def test_missing_credentials_are_a_configuration_error() -> None:
    client = GatewayClient(_config(RAZORPAY_KEY_SECRET=None))

    with pytest.raises(BillingError) as excinfo:
        _ = client.key_secret

    assert excinfo.value.code == "bad_request:configuration"

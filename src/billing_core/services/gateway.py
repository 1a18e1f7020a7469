"""Payment gateway client.

Talks to a Razorpay-compatible REST API: orders are created at checkout and
fetched again during settlement as the authoritative record of what was paid.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import httpx

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import Settings, settings

logger = logging.getLogger(__name__)

GATEWAY_STATUS_PAID = "paid"
HTTP_NOT_FOUND = 404
HTTP_BAD_REQUEST = 400


class GatewayError(RuntimeError):
    """Raised when the gateway cannot be reached or answers unexpectedly."""


@dataclass(frozen=True)
class GatewayOrder:
    """Order as reported by the gateway; ``amount`` is in minor units."""

    id: str
    amount: int
    currency: str
    status: str
    receipt: str | None = None
    notes: dict[str, Any] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.status == GATEWAY_STATUS_PAID

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> GatewayOrder:
        try:
            return cls(
                id=str(payload["id"]),
                amount=int(payload["amount"]),
                currency=str(payload["currency"]),
                status=str(payload["status"]),
                receipt=payload.get("receipt"),
                notes=dict(payload.get("notes") or {}),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayError(f"Malformed order payload from gateway: {exc}") from exc


def _require(value: str | None, name: str) -> str:
    if not value:
        raise BillingError(
            ErrorKind.BAD_REQUEST,
            f"Missing {name} for Razorpay integration.",
            scope="configuration",
        )
    return value


class GatewayClient:
    """HTTP client wrapper for payment gateway interactions."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def key_id(self) -> str:
        return _require(self.config.razorpay_key_id, "RAZORPAY_KEY_ID")

    @property
    def key_secret(self) -> str:
        return _require(self.config.razorpay_key_secret, "RAZORPAY_KEY_SECRET")

    async def _ensure_client(self) -> httpx.AsyncClient:
        auth = httpx.BasicAuth(self.key_id, self.key_secret)
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.razorpay_base_url,
                    timeout=httpx.Timeout(self.config.razorpay_timeout_seconds),
                    auth=auth,
                    transport=self._transport,
                )
        return self._client

    async def _request(
        self, method: str, path: str, *, json_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, json=json_data)
        except httpx.HTTPError as exc:
            logger.error("Gateway request %s %s failed: %s", method, path, exc)
            raise GatewayError(f"Gateway request failed: {exc}") from exc

        if response.status_code == HTTP_NOT_FOUND:
            raise BillingError(ErrorKind.NOT_FOUND, "Order not found at the payment gateway.")
        if response.status_code >= HTTP_BAD_REQUEST:
            logger.error(
                "Gateway responded with %s for %s %s", response.status_code, method, path
            )
            raise GatewayError(f"Gateway responded with {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayError("Gateway returned a non-JSON response") from exc
        if not isinstance(payload, dict):
            raise GatewayError("Gateway returned an unexpected payload")
        return payload

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, Any] | None = None,
    ) -> GatewayOrder:
        """Create a gateway order for ``amount`` minor units of ``currency``."""
        payload = await self._request(
            "POST",
            "/orders",
            json_data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        return GatewayOrder.from_payload(payload)

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        """Fetch the authoritative order record."""
        payload = await self._request("GET", f"/orders/{order_id}")
        return GatewayOrder.from_payload(payload)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


@lru_cache(maxsize=1)
def get_gateway_client() -> GatewayClient:
    """Return the shared gateway client."""
    return GatewayClient()

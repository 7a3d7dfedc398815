"""Payment gateway clients.

Only intent (gateway order) creation talks to the network. Every failure is
raised as :class:`PaymentGatewayUnavailable` before any order is touched.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..domain.errors import PaymentGatewayUnavailable
from .signature import sign

logger = logging.getLogger("api.payments")


@dataclass(frozen=True)
class GatewayOrder:
    """What the gateway created; ``amount_minor`` is in paise."""

    id: str
    amount_minor: int
    currency: str
    mock: bool = False


class PaymentGateway(Protocol):
    key_id: str | None
    secret: str | None

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str
    ) -> GatewayOrder:
        """Create a gateway order for ``amount_minor`` units of ``currency``."""


def make_receipt() -> str:
    return f"REC-{str(int(time.time() * 1000))[-8:]}"


class RazorpayGateway:
    """Razorpay Orders API over httpx with HTTP basic auth."""

    def __init__(
        self,
        key_id: str | None,
        secret: str | None,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str
    ) -> GatewayOrder:
        if not self.key_id or not self.secret:
            raise PaymentGatewayUnavailable("payment gateway is not configured")
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.secret),
                transport=self._transport,
            ) as client:
                resp = await client.post(f"{self.base_url}/orders", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("gateway request failed: %s", exc.__class__.__name__)
            raise PaymentGatewayUnavailable(
                f"gateway unreachable ({exc.__class__.__name__})"
            ) from exc
        if resp.status_code >= 400:
            logger.warning("gateway rejected order: status=%s", resp.status_code)
            raise PaymentGatewayUnavailable(f"gateway returned {resp.status_code}")
        try:
            data = resp.json()
            return GatewayOrder(
                id=str(data["id"]),
                amount_minor=int(data["amount"]),
                currency=str(data["currency"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise PaymentGatewayUnavailable("gateway sent a malformed response") from exc


class MockGateway:
    """Sandbox gateway that creates orders locally."""

    key_id = "rzp_test_mock"

    def __init__(self, secret: str = "mock_secret") -> None:
        self.secret = secret

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str
    ) -> GatewayOrder:
        return GatewayOrder(
            id=f"order_mock_{uuid.uuid4().hex[:14]}",
            amount_minor=amount_minor,
            currency=currency,
            mock=True,
        )

    def sign_payment(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        """Produce the signature a client would receive after paying."""
        return sign(self.secret, gateway_order_id, gateway_payment_id)


class DisabledGateway:
    """Used when online payments are switched off."""

    key_id = None
    secret = None

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str
    ) -> GatewayOrder:
        raise PaymentGatewayUnavailable("online payments are disabled")


def build_gateway(settings) -> PaymentGateway:
    """Return the gateway selected by ``settings.gateway_provider``."""
    from config import GatewayProvider

    provider = GatewayProvider(settings.gateway_provider)
    if provider == GatewayProvider.MOCK:
        return MockGateway(settings.razorpay_key_secret or "mock_secret")
    if provider == GatewayProvider.NONE:
        return DisabledGateway()
    return RazorpayGateway(
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        base_url=settings.gateway_base_url,
        timeout=settings.gateway_timeout_secs,
    )

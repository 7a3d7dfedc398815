"""Payment reconciliation.

Gateway payments arrive as client-submitted assertions
``(gateway order id, gateway payment id, signature)``. The signature only
proves which payment happened, so the amount applied is always the one the
intent was created for, never anything the client sends, and settlement is
decided from the order's own computed total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..domain.errors import (
    ConflictError,
    InvalidSignature,
    PaymentGatewayUnavailable,
    ValidationError,
)
from ..domain.order import Order
from ..domain.order_status import TERMINAL
from ..domain.values import Payment, PaymentMethod, Principal
from ..events import PAYMENT_REJECTED
from ..payments.gateway import PaymentGateway, make_receipt
from ..payments.signature import verify
from ..pricing.money import ZERO, from_minor_units, quantize, to_decimal, to_minor_units
from ..repos.orders_repo import IntentRecord
from ..routes_metrics import payment_intents_total, payment_verifications_total
from .order_service import OrderService

logger = logging.getLogger("api.payments")


@dataclass(frozen=True)
class PaymentResult:
    order: Order
    duplicate: bool = False

    @property
    def change_due(self) -> Decimal:
        return self.order.change_due


def _has_reference(order: Order, reference: str) -> bool:
    return any(p.external_reference == reference for p in order.payments)


class PaymentService:
    def __init__(
        self, orders: OrderService, gateway: PaymentGateway, *, currency: str = "INR"
    ) -> None:
        self.orders = orders
        self.repo = orders.repo
        self.gateway = gateway
        self.currency = currency

    async def create_payment_intent(
        self,
        amount: object,
        currency: str | None = None,
        order_id: str | None = None,
    ) -> IntentRecord:
        """Create a gateway order for ``amount`` and remember it."""

        value = quantize(to_decimal(amount))
        if value <= ZERO:
            raise ValidationError("amount must be positive")
        currency = (currency or self.currency).upper()
        if currency != self.currency:
            raise ValidationError(
                f"only {self.currency} is accepted", {"currency": currency}
            )
        try:
            gw_order = await self.gateway.create_order(
                to_minor_units(value), currency, make_receipt()
            )
        except PaymentGatewayUnavailable as exc:
            payment_intents_total.labels(result="unavailable").inc()
            logger.warning(
                "payment intent failed: %s", exc.reason, extra={"order_id": order_id}
            )
            raise
        payment_intents_total.labels(result="ok").inc()
        intent = IntentRecord(
            gateway_order_id=gw_order.id,
            order_id=order_id,
            amount=from_minor_units(gw_order.amount_minor),
            currency=gw_order.currency,
            created_at=self.orders.clock(),
        )
        await self.repo.save_intent(intent)
        logger.info(
            "payment intent %s for %s %s",
            intent.gateway_order_id,
            intent.amount,
            intent.currency,
            extra={"order_id": order_id},
        )
        return intent

    async def create_intent_for_order(
        self, order_id: str, principal: Principal | None = None
    ) -> IntentRecord:
        """Create an intent for the order's outstanding balance."""

        order = await self.orders.get(order_id, principal)
        if order.status in TERMINAL:
            raise ValidationError(
                "order is closed for payments", {"status": order.status.value}
            )
        if order.balance_amount <= ZERO:
            raise ValidationError("nothing left to pay on this order")
        return await self.create_payment_intent(
            order.balance_amount, self.currency, order_id=order.id
        )

    async def _reject(self, order_id: str, gateway_order_id: str, reason: str) -> None:
        payment_verifications_total.labels(result=reason).inc()
        logger.warning(
            "payment verification rejected (%s) for gateway order %s",
            reason,
            gateway_order_id,
            extra={"order_id": order_id},
        )
        await self.orders.events.publish(
            PAYMENT_REJECTED,
            {"order_id": order_id, "gateway_order_id": gateway_order_id, "reason": reason},
        )

    async def verify_and_apply(
        self,
        order_id: str,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        principal: Principal | None = None,
    ) -> PaymentResult:
        """Verify a gateway payment assertion and apply it to ``order_id``.

        A second verification of the same gateway payment returns the order as
        it is with ``duplicate=True`` instead of charging twice.
        """

        if not verify(self.gateway.secret or "", gateway_order_id, gateway_payment_id, signature):
            await self._reject(order_id, gateway_order_id, "invalid_signature")
            raise InvalidSignature({"order_id": order_id})

        order = await self.orders.get(order_id, principal)
        intent = await self.repo.find_intent(gateway_order_id)
        if intent is not None and intent.order_id is None:
            # a free-standing intent pays for the first order it is verified against
            try:
                intent = await self.repo.bind_intent(gateway_order_id, order_id)
            except ConflictError:
                intent = await self.repo.find_intent(gateway_order_id)
        if intent is None or intent.order_id != order_id:
            await self._reject(order_id, gateway_order_id, "unknown_intent")
            raise ValidationError(
                "payment does not belong to this order",
                {"gateway_order_id": gateway_order_id},
            )
        if _has_reference(order, gateway_payment_id):
            payment_verifications_total.labels(result="duplicate").inc()
            return PaymentResult(order, duplicate=True)

        payment = Payment(
            method=PaymentMethod.ONLINE,
            amount=intent.amount,
            external_reference=gateway_payment_id,
            applied_by=principal.id if principal is not None else None,
            applied_at=self.orders.clock(),
        )
        try:
            updated = await self.orders.apply_payment(order_id, payment)
        except ConflictError:
            current = await self.orders.get(order_id)
            if _has_reference(current, gateway_payment_id):
                payment_verifications_total.labels(result="duplicate").inc()
                return PaymentResult(current, duplicate=True)
            raise
        payment_verifications_total.labels(result="ok").inc()
        return PaymentResult(updated)

    async def record_staff_payments(
        self, order_id: str, principal: Principal, payments: list[Payment]
    ) -> PaymentResult:
        """Record till payments; overpayment comes back as change due."""

        order = await self.orders.record_staff_payments(order_id, principal, payments)
        return PaymentResult(order)


__all__ = ["PaymentResult", "PaymentService"]

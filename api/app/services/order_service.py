"""Order creation and lifecycle operations.

Every write goes through the repository's compare-and-swap methods. When a
write loses a race the service rereads the order, re-runs the state machine
guards against the fresh state and tries again, at most ``max_attempts``
times, before giving up with :class:`Contention`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from ..catalog import Catalog, LineRequest, snapshot_lines
from ..domain.errors import (
    ConflictError,
    Contention,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from ..domain.order import Order, new_checkout_order, new_pos_order, reprice
from ..domain.order_status import TIMESTAMP_FIELDS, OrderStatus
from ..domain.state_machine import apply_transition, check_transition, settles
from ..domain.values import Channel, Discount, Payment, PaymentMethod, Principal
from ..events import ORDER_CREATED, ORDER_STATUS, PAYMENT_APPLIED, EventBus, event_bus
from ..pricing.calculator import PricingPolicy
from ..pricing.money import CENT, ZERO, to_decimal
from ..repos.orders_repo import OrdersRepo
from ..routes_metrics import (
    client_total_mismatch_total,
    order_cas_conflicts_total,
    order_contention_total,
    order_transitions_total,
    orders_created_total,
    payments_recorded_total,
)

logger = logging.getLogger("api.orders")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _event(order: Order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status.value,
        "channel": order.channel.value,
        "table_ref": order.table_ref,
        "final_amount": str(order.final_amount),
        "balance_amount": str(order.balance_amount),
    }


def _require_staff(principal: Principal) -> None:
    if not principal.is_staff:
        raise PermissionDenied("staff only", {"role": principal.role})


class OrderService:
    def __init__(
        self,
        repo: OrdersRepo,
        catalog: Catalog,
        policy: PricingPolicy,
        *,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 3,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.policy = policy
        self.events = events or event_bus
        self.clock = clock
        self.max_attempts = max(1, max_attempts)

    # -- reads -----------------------------------------------------------

    async def get(self, order_id: str, principal: Principal | None = None) -> Order:
        order = await self.repo.find_by_id(order_id)
        if order is None:
            raise NotFound(order_id)
        if principal is not None and not principal.is_staff:
            if order.customer_ref != principal.id:
                raise PermissionDenied("order belongs to another customer")
        return order

    async def list_orders(
        self,
        principal: Principal,
        *,
        status: OrderStatus | None = None,
        day: str | None = None,
        limit: int = 50,
    ) -> list[Order]:
        """Staff see every order; customers only their own."""
        customer_ref = None if principal.is_staff else principal.id
        return await self.repo.list_orders(
            customer_ref=customer_ref, status=status, day=day, limit=limit
        )

    # -- creation --------------------------------------------------------

    def _check_client_total(self, order: Order, client_total: object) -> None:
        """Log a caller-computed total that disagrees with ours; never use it."""
        if client_total is None:
            return
        try:
            claimed = to_decimal(client_total)
        except ValueError:
            claimed = None
        if claimed is not None and abs(claimed - order.final_amount) < CENT:
            return
        client_total_mismatch_total.inc()
        logger.warning(
            "client total %s differs from computed %s",
            client_total,
            order.final_amount,
            extra={"order_number": order.order_number or None},
        )

    async def _persist_new(self, order: Order, client_total: object) -> Order:
        self._check_client_total(order, client_total)
        stored = await self.repo.create(order)
        orders_created_total.labels(channel=stored.channel.value).inc()
        logger.info(
            "order %s created as %s",
            stored.order_number,
            stored.status.value,
            extra={"order_id": stored.id, "order_number": stored.order_number},
        )
        await self.events.publish(ORDER_CREATED, _event(stored))
        return stored

    async def create_checkout_order(
        self,
        principal: Principal,
        *,
        channel: Channel,
        items: Sequence[LineRequest],
        table_ref: str | None = None,
        notes: str = "",
        confirm: bool = False,
        client_total: object = None,
    ) -> Order:
        """Create a customer's order as a draft, or confirmed when ``confirm``."""

        if any(req.discount_kind for req in items) and not principal.is_staff:
            raise PermissionDenied("discounts are applied by staff")
        lines = await snapshot_lines(self.catalog, items)
        at = self.clock()
        order = new_checkout_order(
            channel=channel,
            customer_ref=principal.id,
            line_items=lines,
            policy=self.policy,
            at=at,
            table_ref=table_ref,
            notes=notes,
        )
        if confirm:
            check_transition(order, OrderStatus.CONFIRMED, principal)
            order = apply_transition(
                order, OrderStatus.CONFIRMED, at=at, actor=principal.id
            )
        return await self._persist_new(order, client_total)

    async def create_pos_order(
        self,
        principal: Principal,
        *,
        items: Sequence[LineRequest],
        table_ref: str | None = None,
        discounts: Iterable[Discount] = (),
        complimentary: bool = False,
        payments: Iterable[Payment] = (),
        notes: str = "",
        client_total: object = None,
    ) -> Order:
        """Create a walk-in order, confirmed, with any payments taken at the till.

        A complimentary or fully paid order is settled in the same write. The
        whole aggregate is built in memory first so nothing is stored unless
        every guard passes.
        """

        _require_staff(principal)
        payments = list(payments)
        if complimentary and payments:
            raise ValidationError("complimentary orders take no payments")
        lines = await snapshot_lines(self.catalog, items)
        at = self.clock()
        order = new_pos_order(
            line_items=lines,
            policy=self.policy,
            at=at,
            created_by=principal.id,
            table_ref=table_ref,
            discounts=[replace(d, applied_by=d.applied_by or principal.id) for d in discounts],
            complimentary=complimentary,
            notes=notes,
        )
        check_transition(order, OrderStatus.CONFIRMED, principal)
        order = apply_transition(order, OrderStatus.CONFIRMED, at=at, actor=principal.id)
        for payment in payments:
            order = order.with_payment(self._staff_payment(payment, principal, at))
        if settles(order):
            check_transition(order, OrderStatus.PAID, principal)
            order = apply_transition(order, OrderStatus.PAID, at=at, actor=principal.id)
        stored = await self._persist_new(order, client_total)
        for payment in stored.payments:
            payments_recorded_total.labels(method=payment.method.value).inc()
        return stored

    @staticmethod
    def _staff_payment(payment: Payment, principal: Principal, at: datetime) -> Payment:
        amount = to_decimal(payment.amount)
        if amount <= ZERO:
            raise ValidationError("payment amount must be positive")
        if payment.method == PaymentMethod.ONLINE:
            raise ValidationError("online payments are recorded by gateway verification")
        return replace(payment, amount=amount, applied_by=principal.id, applied_at=at)

    # -- mutations -------------------------------------------------------

    async def add_items(
        self, order_id: str, principal: Principal, items: Sequence[LineRequest]
    ) -> Order:
        """Append lines to a draft order and reprice it."""

        if any(req.discount_kind for req in items) and not principal.is_staff:
            raise PermissionDenied("discounts are applied by staff")
        lines = await snapshot_lines(self.catalog, items)
        if not lines:
            raise ValidationError("no items to add")
        for _ in range(self.max_attempts):
            order = await self.get(order_id, principal)
            updated = reprice(order, order.line_items + tuple(lines), self.policy)
            try:
                return await self.repo.replace_draft_lines(
                    order_id, order.version, updated.line_items, updated.amounts
                )
            except ConflictError:
                order_cas_conflicts_total.inc()
        order_contention_total.inc()
        raise Contention(order_id, self.max_attempts)

    async def transition(
        self,
        order_id: str,
        target: OrderStatus,
        principal: Principal | None,
        *,
        override: bool = False,
        reason: str | None = None,
    ) -> Order:
        """Move an order to ``target`` with a compare-and-swap retry loop.

        ``principal=None`` is the system actor used for settlement.
        """

        actor = principal.id if principal is not None else None
        for attempt in range(1, self.max_attempts + 1):
            order = await self.get(order_id, principal)
            check_transition(order, target, principal, override=override)
            try:
                updated = await self.repo.update_status(
                    order_id,
                    order.status,
                    target,
                    TIMESTAMP_FIELDS.get(target),
                    actor=actor,
                    at=self.clock(),
                    reason=reason,
                )
            except ConflictError as exc:
                order_cas_conflicts_total.inc()
                logger.info(
                    "status write lost race (attempt %d): %s",
                    attempt,
                    exc.message,
                    extra={"order_id": order_id},
                )
                continue
            order_transitions_total.labels(status=target.value).inc()
            logger.info(
                "order %s %s -> %s",
                updated.order_number,
                order.status.value,
                target.value,
                extra={
                    "order_id": order_id,
                    "status": target.value,
                    "actor": actor,
                    "reason": reason,
                },
            )
            await self.events.publish(ORDER_STATUS, _event(updated))
            if target != OrderStatus.PAID and settles(updated):
                updated = await self.settle(updated)
            return updated
        order_contention_total.inc()
        raise Contention(order_id, self.max_attempts)

    async def settle(self, order: Order) -> Order:
        """Move a fully paid order to ``paid`` on behalf of the system."""
        try:
            return await self.transition(order.id, OrderStatus.PAID, None, reason="settled")
        except InvalidTransition as exc:
            # someone else settled or cancelled it in between
            logger.info("settlement skipped: %s", exc.message, extra={"order_id": order.id})
            return await self.get(order.id)

    async def confirm(self, order_id: str, principal: Principal) -> Order:
        return await self.transition(order_id, OrderStatus.CONFIRMED, principal)

    async def cancel(
        self,
        order_id: str,
        principal: Principal,
        *,
        reason: str | None = None,
        override: bool = False,
    ) -> Order:
        return await self.transition(
            order_id, OrderStatus.CANCELLED, principal, override=override, reason=reason
        )

    async def mark_kot_printed(self, order_id: str, principal: Principal) -> Order:
        _require_staff(principal)
        order = await self.repo.mark_kot_printed(order_id, self.clock())
        logger.info(
            "kitchen ticket printed for %s",
            order.order_number,
            extra={"order_id": order_id, "actor": principal.id},
        )
        return order

    async def apply_payment(
        self, order_id: str, payment: Payment, *, settle: bool = True
    ) -> Order:
        """Append ``payment`` and settle the order if that paid it off."""
        return await self.apply_payments(order_id, [payment], settle=settle)

    async def apply_payments(
        self, order_id: str, payments: Sequence[Payment], *, settle: bool = True
    ) -> Order:
        """Append ``payments`` in a single write, then settle once if due.

        A failure on any entry leaves the order exactly as it was.
        """

        updated = await self.repo.append_payments(order_id, payments)
        for payment in payments:
            payments_recorded_total.labels(method=payment.method.value).inc()
            logger.info(
                "payment of %s by %s on %s",
                payment.amount,
                payment.method.value,
                updated.order_number,
                extra={"order_id": order_id, "actor": payment.applied_by},
            )
            await self.events.publish(
                PAYMENT_APPLIED,
                {**_event(updated), "method": payment.method.value, "amount": str(payment.amount)},
            )
        logger.info(
            "order %s balance %s",
            updated.order_number,
            updated.balance_amount,
            extra={"order_id": order_id},
        )
        if settle and settles(updated):
            updated = await self.settle(updated)
        return updated

    async def record_staff_payments(
        self, order_id: str, principal: Principal, payments: Sequence[Payment]
    ) -> Order:
        """Record one or more till payments (split bill) against an order."""

        _require_staff(principal)
        if not payments:
            raise ValidationError("at least one payment is required")
        at = self.clock()
        entries = [self._staff_payment(p, principal, at) for p in payments]
        order = await self.get(order_id, principal)
        if order.status in (OrderStatus.PAID, OrderStatus.CANCELLED):
            raise ValidationError(
                "order is closed for payments", {"status": order.status.value}
            )
        return await self.apply_payments(order_id, entries)


__all__ = ["OrderService", "utcnow"]

"""In-process order store for development and tests.

Honors the same compare-and-swap contract as the SQL repository: each
operation checks and writes under one lock, so a stale ``expected`` status or
version is rejected instead of overwriting a concurrent change.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Sequence

from ..domain.errors import ConflictError, NotFound, StoreUnavailable, ValidationError
from ..domain.order import Order
from ..domain.order_status import OrderStatus
from ..domain.state_machine import apply_transition
from ..domain.values import Amounts, LineItem, Payment
from ..numbering import CounterUnavailable, OrderNumberGenerator
from .orders_repo import IntentRecord, OrdersRepo

MAX_NUMBER_ATTEMPTS = 5


class MemoryOrdersRepo(OrdersRepo):
    def __init__(self, numbering: OrderNumberGenerator | None = None) -> None:
        super().__init__(numbering or OrderNumberGenerator())
        self._lock = asyncio.Lock()
        self._orders: dict[str, Order] = {}
        self._numbers: set[str] = set()
        self._references: set[str] = set()
        self._counters: dict[str, int] = {}
        self._intents: dict[str, IntentRecord] = {}
        # Flip off to exercise degraded numbering
        self.counter_available = True

    async def incr_day(self, day: str) -> int:
        if not self.counter_available:
            raise CounterUnavailable("counter store offline")
        async with self._lock:
            current = self._counters.get(day, 0) + 1
            self._counters[day] = current
            return current

    async def create(self, order: Order) -> Order:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = await self.next_order_number(order.created_at)
            async with self._lock:
                if number.value in self._numbers:
                    continue
                refs = [p.external_reference for p in order.payments if p.external_reference]
                if self._references.intersection(refs):
                    raise ConflictError(number.value)
                stored = replace(
                    order,
                    id=str(uuid.uuid4()),
                    order_number=number.value,
                    number_degraded=number.degraded,
                )
                self._orders[stored.id] = stored
                self._numbers.add(stored.order_number)
                self._references.update(refs)
                return stored
        raise StoreUnavailable("could not allocate a unique order number")

    async def find_by_id(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    def _get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFound(order_id)
        return order

    async def update_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        timestamp_field: str | None,
        *,
        actor: str | None,
        at: datetime,
        reason: str | None = None,
    ) -> Order:
        async with self._lock:
            current = self._get(order_id)
            if current.status != expected:
                raise ConflictError(order_id, expected, current.status)
            updated = apply_transition(
                current,
                new,
                at=at,
                actor=actor,
                reason=reason,
                timestamp_field=timestamp_field,
            )
            self._orders[order_id] = updated
            return updated

    async def append_payments(
        self, order_id: str, payments: Sequence[Payment]
    ) -> Order:
        async with self._lock:
            current = self._get(order_id)
            if current.status in (OrderStatus.PAID, OrderStatus.CANCELLED):
                raise ValidationError(
                    "order is closed for payments", {"status": current.status.value}
                )
            refs = [p.external_reference for p in payments if p.external_reference]
            if len(set(refs)) != len(refs) or self._references.intersection(refs):
                raise ConflictError(order_id)
            updated = replace(
                current,
                payments=current.payments + tuple(payments),
                version=current.version + 1,
            )
            self._references.update(refs)
            self._orders[order_id] = updated
            return updated

    async def mark_kot_printed(self, order_id: str, at: datetime) -> Order:
        async with self._lock:
            current = self._get(order_id)
            if current.kot_printed:
                return current
            if current.status == OrderStatus.CANCELLED:
                raise ValidationError("order is cancelled")
            updated = replace(
                current, kot_printed=True, kot_printed_at=at, version=current.version + 1
            )
            self._orders[order_id] = updated
            return updated

    async def replace_draft_lines(
        self,
        order_id: str,
        expected_version: int,
        line_items: Sequence[LineItem],
        amounts: Amounts,
    ) -> Order:
        async with self._lock:
            current = self._get(order_id)
            if current.status != OrderStatus.DRAFT or current.version != expected_version:
                raise ConflictError(order_id, expected_version, current.version)
            updated = replace(
                current,
                line_items=tuple(line_items),
                amounts=amounts,
                version=current.version + 1,
            )
            self._orders[order_id] = updated
            return updated

    async def list_orders(
        self,
        *,
        customer_ref: str | None = None,
        status: OrderStatus | None = None,
        day: str | None = None,
        limit: int = 50,
    ) -> list[Order]:
        orders = [
            o
            for o in self._orders.values()
            if (customer_ref is None or o.customer_ref == customer_ref)
            and (status is None or o.status == status)
            and (day is None or o.order_number.startswith(day))
        ]
        orders.sort(key=lambda o: (o.created_at, o.order_number), reverse=True)
        return orders[:limit]

    async def save_intent(self, intent: IntentRecord) -> None:
        self._intents[intent.gateway_order_id] = intent

    async def find_intent(self, gateway_order_id: str) -> IntentRecord | None:
        return self._intents.get(gateway_order_id)

    async def bind_intent(self, gateway_order_id: str, order_id: str) -> IntentRecord:
        async with self._lock:
            intent = self._intents.get(gateway_order_id)
            if intent is None:
                raise NotFound(gateway_order_id, "payment intent")
            if intent.order_id is None:
                intent = replace(intent, order_id=order_id)
                self._intents[gateway_order_id] = intent
            elif intent.order_id != order_id:
                raise ConflictError(gateway_order_id)
            return intent

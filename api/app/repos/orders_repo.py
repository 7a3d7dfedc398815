"""Repository interface for order persistence.

Every write that depends on an order's current state is a compare-and-swap:
implementations must reject it with :class:`~api.app.domain.errors.ConflictError`
when another writer got there first, leaving the stored order untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from ..domain.order import Order
from ..domain.order_status import OrderStatus
from ..domain.values import Amounts, LineItem, Payment
from ..numbering import OrderNumber, OrderNumberGenerator


@dataclass(frozen=True)
class IntentRecord:
    """A gateway order created to collect payment for an order."""

    gateway_order_id: str
    order_id: str | None
    amount: Decimal
    currency: str
    created_at: datetime | None = None


class OrdersRepo(ABC):
    """Contract for order persistence and manipulation."""

    def __init__(self, numbering: OrderNumberGenerator) -> None:
        self.numbering = numbering

    @abstractmethod
    async def incr_day(self, day: str) -> int:
        """Atomically bump and return the order counter for ``day``."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Persist a new order, assigning its id and order number."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, order_id: str) -> Order | None:
        """Return the order or ``None``."""
        raise NotImplementedError

    @abstractmethod
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
        """Move ``order_id`` from ``expected`` to ``new``.

        Stamps ``timestamp_field`` if it is still empty and appends a status
        history entry in the same write.
        """
        raise NotImplementedError

    @abstractmethod
    async def append_payments(
        self, order_id: str, payments: Sequence[Payment]
    ) -> Order:
        """Append every entry of ``payments`` to a non-terminal order in one write.

        Either all entries are stored or none are: a reused external reference
        raises :class:`ConflictError` and a closed order raises
        :class:`ValidationError`, both leaving the order untouched.
        """
        raise NotImplementedError

    async def append_payment(self, order_id: str, payment: Payment) -> Order:
        return await self.append_payments(order_id, [payment])

    @abstractmethod
    async def mark_kot_printed(self, order_id: str, at: datetime) -> Order:
        """Set the kitchen ticket flag; idempotent."""
        raise NotImplementedError

    @abstractmethod
    async def replace_draft_lines(
        self,
        order_id: str,
        expected_version: int,
        line_items: Sequence[LineItem],
        amounts: Amounts,
    ) -> Order:
        """Swap the lines of a draft order if it is still at ``expected_version``."""
        raise NotImplementedError

    @abstractmethod
    async def list_orders(
        self,
        *,
        customer_ref: str | None = None,
        status: OrderStatus | None = None,
        day: str | None = None,
        limit: int = 50,
    ) -> list[Order]:
        """Return the newest orders matching every given filter."""
        raise NotImplementedError

    @abstractmethod
    async def save_intent(self, intent: IntentRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    async def find_intent(self, gateway_order_id: str) -> IntentRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def bind_intent(self, gateway_order_id: str, order_id: str) -> IntentRecord:
        """Attach an unbound intent to ``order_id``.

        Only succeeds while the intent has no order (or already has this one);
        an intent bound to a different order raises :class:`ConflictError`.
        """
        raise NotImplementedError

    async def next_order_number(self, at: datetime) -> OrderNumber:
        """Issue the next order number for the business day containing ``at``."""
        return await self.numbering.next(self, at)

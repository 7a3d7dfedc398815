"""The order aggregate.

An :class:`Order` is immutable; every mutation produces a new instance through
:mod:`.state_machine` or the constructors below, and the repository persists
it with a compare-and-swap guard. Money fields are never assigned directly,
they always come out of :func:`~api.app.pricing.calculator.compute_totals`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from ..pricing.calculator import PricingPolicy
from ..pricing.money import ZERO
from .errors import ValidationError
from .order_status import OrderStatus
from .values import (
    Amounts,
    Channel,
    Discount,
    LineItem,
    Payment,
    StatusChange,
)


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    channel: Channel
    line_items: tuple[LineItem, ...]
    amounts: Amounts
    status: OrderStatus
    created_at: datetime
    customer_ref: str | None = None
    table_ref: str | None = None
    payments: tuple[Payment, ...] = ()
    is_complimentary: bool = False
    kot_printed: bool = False
    kot_printed_at: datetime | None = None
    number_degraded: bool = False
    notes: str = ""
    created_by: str | None = None
    confirmed_at: datetime | None = None
    preparing_at: datetime | None = None
    ready_at: datetime | None = None
    served_at: datetime | None = None
    billed_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    version: int = 1
    status_history: tuple[StatusChange, ...] = ()

    @property
    def discounts(self) -> tuple[Discount, ...]:
        return self.amounts.discounts

    @property
    def taxes(self):
        return self.amounts.taxes

    @property
    def final_amount(self) -> Decimal:
        return self.amounts.final_amount

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def balance_amount(self) -> Decimal:
        """Outstanding amount; overpayment never makes this negative."""

        return max(ZERO, self.final_amount - self.total_paid)

    @property
    def change_due(self) -> Decimal:
        return max(ZERO, self.total_paid - self.final_amount)

    @property
    def is_fully_paid(self) -> bool:
        return self.total_paid >= self.final_amount

    @property
    def is_split(self) -> bool:
        return len(self.payments) > 1

    @property
    def is_pos_order(self) -> bool:
        return self.channel == Channel.POS

    def with_payment(self, payment: Payment) -> "Order":
        return replace(
            self, payments=self.payments + (payment,), version=self.version + 1
        )


def _validate_lines(line_items: Sequence[LineItem]) -> None:
    if not line_items:
        raise ValidationError("an order needs at least one item")
    for item in line_items:
        if item.qty < 1:
            raise ValidationError(
                "quantity must be at least 1", {"product_id": item.product_id}
            )
        if item.unit_price < ZERO:
            raise ValidationError(
                "price must not be negative", {"product_id": item.product_id}
            )


def _new_order(
    *,
    channel: Channel,
    line_items: Iterable[LineItem],
    discounts: Iterable[Discount],
    policy: PricingPolicy,
    at: datetime,
    customer_ref: str | None,
    table_ref: str | None,
    complimentary: bool,
    notes: str,
    created_by: str | None,
) -> Order:
    lines = tuple(line_items)
    _validate_lines(lines)
    amounts = policy.price(lines, discounts, complimentary=complimentary)
    return Order(
        id="",
        order_number="",
        channel=channel,
        line_items=lines,
        amounts=amounts,
        status=OrderStatus.DRAFT,
        created_at=at,
        customer_ref=customer_ref,
        table_ref=table_ref,
        is_complimentary=complimentary,
        notes=notes,
        created_by=created_by,
        status_history=(
            StatusChange(None, OrderStatus.DRAFT, created_by, at),
        ),
    )


def new_checkout_order(
    *,
    channel: Channel,
    customer_ref: str | None,
    line_items: Iterable[LineItem],
    policy: PricingPolicy,
    at: datetime,
    table_ref: str | None = None,
    discounts: Iterable[Discount] = (),
    notes: str = "",
) -> Order:
    """Build an unsaved draft order placed by a customer from the web menu."""

    if channel == Channel.POS:
        raise ValidationError("walk-in orders are created through the POS")
    if not customer_ref:
        raise ValidationError("a customer is required for this channel")
    if channel == Channel.DINE_IN and not table_ref:
        raise ValidationError("dine-in orders need a table")
    return _new_order(
        channel=channel,
        line_items=line_items,
        discounts=discounts,
        policy=policy,
        at=at,
        customer_ref=customer_ref,
        table_ref=table_ref,
        complimentary=False,
        notes=notes,
        created_by=customer_ref,
    )


def new_pos_order(
    *,
    line_items: Iterable[LineItem],
    policy: PricingPolicy,
    at: datetime,
    created_by: str,
    table_ref: str | None = None,
    discounts: Iterable[Discount] = (),
    complimentary: bool = False,
    notes: str = "",
) -> Order:
    """Build an unsaved draft order for a walk-in customer.

    POS orders never carry a customer identity.
    """

    return _new_order(
        channel=Channel.POS,
        line_items=line_items,
        discounts=discounts,
        policy=policy,
        at=at,
        customer_ref=None,
        table_ref=table_ref,
        complimentary=complimentary,
        notes=notes,
        created_by=created_by,
    )


def reprice(order: Order, line_items: Iterable[LineItem], policy: PricingPolicy) -> Order:
    """Return ``order`` with new draft lines and recomputed amounts."""

    if order.status != OrderStatus.DRAFT:
        raise ValidationError(
            "items can only change while the order is a draft",
            {"status": order.status.value},
        )
    lines = tuple(line_items)
    _validate_lines(lines)
    amounts = policy.price(
        lines, order.amounts.discounts, complimentary=order.is_complimentary
    )
    return replace(order, line_items=lines, amounts=amounts)


__all__ = ["Order", "new_checkout_order", "new_pos_order", "reprice"]

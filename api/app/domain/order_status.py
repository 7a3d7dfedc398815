"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    BILLED = "billed"
    PAID = "paid"
    CANCELLED = "cancelled"


TERMINAL: frozenset[OrderStatus] = frozenset({OrderStatus.PAID, OrderStatus.CANCELLED})

# ``CONFIRMED -> PAID`` is the walk-in fast path; the guards in
# :mod:`state_machine` restrict it to POS and complimentary orders.
TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.DRAFT: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [
        OrderStatus.PREPARING,
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.SERVED, OrderStatus.CANCELLED],
    OrderStatus.SERVED: [OrderStatus.BILLED, OrderStatus.CANCELLED],
    OrderStatus.BILLED: [OrderStatus.PAID, OrderStatus.CANCELLED],
    OrderStatus.PAID: [],
    OrderStatus.CANCELLED: [],
}

# Column stamped when an order enters each status.
TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.SERVED: "served_at",
    OrderStatus.BILLED: "billed_at",
    OrderStatus.PAID: "paid_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL

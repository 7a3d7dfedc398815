"""Value objects making up an order.

All of these are frozen: an order is changed by building a new aggregate, and
the repositories persist line items and payments as append-only rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ..pricing.money import CENT, HUNDRED, ZERO
from .order_status import OrderStatus


class Channel(str, Enum):
    """Where an order came from."""

    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"
    POS = "pos"


class DiscountKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"
    ONLINE = "online"


def discount_for(kind: DiscountKind | None, value: Decimal, base: Decimal) -> Decimal:
    """Return the discount ``kind``/``value`` yields on ``base``, within ``[0, base]``."""

    if kind is None or base <= ZERO:
        return ZERO
    if kind == DiscountKind.PERCENTAGE:
        amount = base * value / HUNDRED
    else:
        amount = value
    return min(max(amount, ZERO), base)


@dataclass(frozen=True)
class LineItem:
    """A snapshotted catalog item on an order.

    ``name`` and ``unit_price`` are copied from the catalog when the line is
    created so later menu edits never change historical orders.
    """

    product_id: str
    name: str
    unit_price: Decimal
    qty: int
    discount_kind: DiscountKind | None = None
    discount_value: Decimal = ZERO
    notes: str = ""

    @property
    def gross(self) -> Decimal:
        return self.unit_price * self.qty

    @property
    def discount_amount(self) -> Decimal:
        return discount_for(self.discount_kind, self.discount_value, self.gross)

    @property
    def item_total(self) -> Decimal:
        """Unrounded line total net of the line discount."""

        return self.gross - self.discount_amount


@dataclass(frozen=True)
class Discount:
    """Order level discount; ``amount`` is filled in by the calculator."""

    kind: DiscountKind
    value: Decimal
    amount: Decimal = ZERO
    reason: str = ""
    applied_by: str | None = None


@dataclass(frozen=True)
class TaxRate:
    name: str
    rate: Decimal


@dataclass(frozen=True)
class Tax:
    name: str
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Amounts:
    """Derived money fields of an order, rounded to two decimals."""

    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    total: Decimal
    round_off: Decimal
    final_amount: Decimal
    discounts: tuple[Discount, ...] = ()
    taxes: tuple[Tax, ...] = ()

    def is_consistent(self, complimentary: bool = False) -> bool:
        """Check ``final = subtotal - discount + tax + round_off``.

        Complimentary orders keep their subtotal for reporting while every
        other field is zero, so for them only ``final == 0`` is checked.
        """

        if complimentary:
            return self.final_amount == ZERO
        expected = self.subtotal - self.total_discount + self.total_tax + self.round_off
        return abs(self.final_amount - expected) < CENT


@dataclass(frozen=True)
class Payment:
    """One entry in an order's append-only payment ledger."""

    method: PaymentMethod
    amount: Decimal
    external_reference: str | None = None
    applied_by: str | None = None
    applied_at: datetime | None = None


STAFF_ROLES = frozenset({"admin", "staff"})


@dataclass(frozen=True)
class Principal:
    """Authenticated caller attached to every mutating operation."""

    id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass(frozen=True)
class StatusChange:
    from_status: OrderStatus | None
    to_status: OrderStatus
    actor: str | None
    at: datetime
    reason: str | None = None


__all__ = [
    "Channel",
    "DiscountKind",
    "PaymentMethod",
    "discount_for",
    "LineItem",
    "Discount",
    "TaxRate",
    "Tax",
    "Amounts",
    "Payment",
    "STAFF_ROLES",
    "Principal",
    "StatusChange",
]

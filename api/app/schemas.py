# schemas.py

"""Pydantic models for API payloads and the order projection."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .catalog import LineRequest
from .domain.order import Order
from .domain.values import Channel, Discount, DiscountKind, Payment, PaymentMethod
from .pricing.money import as_float


class OrderLine(BaseModel):
    """Requested line; prices always come from the menu."""

    item_id: str = Field(validation_alias=AliasChoices("item_id", "product_id", "itemId"))
    qty: int = Field(default=1, ge=1, validation_alias=AliasChoices("qty", "quantity"))
    notes: str = Field(
        default="", validation_alias=AliasChoices("notes", "special_instructions")
    )
    discount_kind: Optional[DiscountKind] = None
    discount_value: Decimal = Decimal("0")

    def to_request(self) -> LineRequest:
        return LineRequest(
            product_id=self.item_id,
            qty=self.qty,
            notes=self.notes,
            discount_kind=self.discount_kind,
            discount_value=self.discount_value,
        )


class DiscountIn(BaseModel):
    kind: DiscountKind
    value: Decimal = Field(ge=0)
    reason: str = ""

    def to_domain(self) -> Discount:
        return Discount(kind=self.kind, value=self.value, reason=self.reason)


class PaymentIn(BaseModel):
    method: PaymentMethod
    amount: Decimal = Field(gt=0)
    reference: Optional[str] = None

    def to_domain(self) -> Payment:
        return Payment(
            method=self.method, amount=self.amount, external_reference=self.reference
        )


class CheckoutOrderIn(BaseModel):
    channel: Channel = Channel.DINE_IN
    items: List[OrderLine]
    table_ref: Optional[str] = None
    notes: str = ""
    confirm: bool = False
    # Advisory only; a mismatch is logged, the server total is used.
    client_total: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("client_total", "total", "finalAmount")
    )


class PosOrderIn(BaseModel):
    items: List[OrderLine]
    table_ref: Optional[str] = None
    discounts: List[DiscountIn] = []
    complimentary: bool = Field(
        default=False, validation_alias=AliasChoices("complimentary", "is_complimentary")
    )
    payments: List[PaymentIn] = []
    notes: str = ""
    client_total: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("client_total", "total", "finalAmount")
    )


class AddItemsIn(BaseModel):
    items: List[OrderLine]


class CancelIn(BaseModel):
    reason: Optional[str] = None
    override: bool = False


class StatusIn(BaseModel):
    status: str
    reason: Optional[str] = None
    override: bool = False


class PaymentsIn(BaseModel):
    payments: List[PaymentIn]


class PayCreateIn(BaseModel):
    order_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("order_id", "orderId")
    )
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class PayVerifyIn(BaseModel):
    order_id: str = Field(validation_alias=AliasChoices("order_id", "orderId"))
    gateway_order_id: str = Field(
        validation_alias=AliasChoices("gateway_order_id", "razorpay_order_id")
    )
    gateway_payment_id: str = Field(
        validation_alias=AliasChoices("gateway_payment_id", "razorpay_payment_id")
    )
    signature: str = Field(validation_alias=AliasChoices("signature", "razorpay_signature"))


def _ts(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_order(order: Order) -> dict[str, Any]:
    """Read-only projection of ``order``; amounts are reported as stored."""

    amounts = order.amounts
    return {
        "id": order.id,
        "order_number": order.order_number,
        "channel": order.channel.value,
        "customer_ref": order.customer_ref,
        "table_ref": order.table_ref,
        "status": order.status.value,
        "items": [
            {
                "product_id": item.product_id,
                "name": item.name,
                "unit_price": as_float(item.unit_price),
                "qty": item.qty,
                "discount_kind": item.discount_kind.value if item.discount_kind else None,
                "discount_value": as_float(item.discount_value),
                "notes": item.notes,
            }
            for item in order.line_items
        ],
        "discounts": [
            {
                "kind": d.kind.value,
                "value": as_float(d.value),
                "amount": as_float(d.amount),
                "reason": d.reason,
                "applied_by": d.applied_by,
            }
            for d in amounts.discounts
        ],
        "taxes": [
            {"name": t.name, "rate": as_float(t.rate), "amount": as_float(t.amount)}
            for t in amounts.taxes
        ],
        "amounts": {
            "subtotal": as_float(amounts.subtotal),
            "total_discount": as_float(amounts.total_discount),
            "total_tax": as_float(amounts.total_tax),
            "total": as_float(amounts.total),
            "round_off": as_float(amounts.round_off),
            "final_amount": as_float(amounts.final_amount),
        },
        "payments": [
            {
                "method": p.method.value,
                "amount": as_float(p.amount),
                "external_reference": p.external_reference,
                "applied_by": p.applied_by,
                "applied_at": _ts(p.applied_at),
            }
            for p in order.payments
        ],
        "total_paid": as_float(order.total_paid),
        "balance_amount": as_float(order.balance_amount),
        "flags": {
            "is_complimentary": order.is_complimentary,
            "is_split": order.is_split,
            "is_pos_order": order.is_pos_order,
            "kot_printed": order.kot_printed,
            "number_degraded": order.number_degraded,
        },
        "notes": order.notes,
        "created_by": order.created_by,
        "cancel_reason": order.cancel_reason,
        "version": order.version,
        "timestamps": {
            "created_at": _ts(order.created_at),
            "confirmed_at": _ts(order.confirmed_at),
            "preparing_at": _ts(order.preparing_at),
            "ready_at": _ts(order.ready_at),
            "served_at": _ts(order.served_at),
            "billed_at": _ts(order.billed_at),
            "paid_at": _ts(order.paid_at),
            "cancelled_at": _ts(order.cancelled_at),
            "kot_printed_at": _ts(order.kot_printed_at),
        },
        "status_history": [
            {
                "from": h.from_status.value if h.from_status else None,
                "to": h.to_status.value,
                "actor": h.actor,
                "reason": h.reason,
                "at": _ts(h.at),
            }
            for h in order.status_history
        ],
    }

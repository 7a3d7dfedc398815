"""Order pricing.

``compute_totals`` is the only place order money is derived. Arithmetic is
exact :class:`~decimal.Decimal`; each stored field is rounded to ₹0.01 once at
the end, never per line, and the per-record discount and tax amounts are
allocated so they add up to the rounded totals shown on the receipt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from ..domain.values import (
    Amounts,
    Discount,
    LineItem,
    Tax,
    TaxRate,
    discount_for,
)
from .money import HUNDRED, UNIT, ZERO, quantize, rounding_mode, to_decimal

DEFAULT_TAX_NAME = "GST"


def _tax_rates(taxes: object) -> list[TaxRate]:
    if taxes is None:
        return []
    if isinstance(taxes, (int, float, str, Decimal)):
        rate = to_decimal(taxes)
        return [TaxRate(DEFAULT_TAX_NAME, rate)] if rate else []
    return [
        t if isinstance(t, TaxRate) else TaxRate(t.name, to_decimal(t.rate))
        for t in taxes  # type: ignore[attr-defined]
    ]


def _allocate(raw: Sequence[Decimal], total: Decimal, rounding: str) -> list[Decimal]:
    """Round ``raw`` parts so they sum exactly to ``total``.

    The rounding residue lands on the largest part.
    """

    parts = [quantize(r, rounding) for r in raw]
    residue = total - sum(parts, ZERO)
    if parts and residue:
        idx = max(range(len(raw)), key=lambda i: raw[i])
        parts[idx] += residue
    return parts


def compute_totals(
    line_items: Iterable[LineItem],
    discounts: Iterable[Discount] = (),
    taxes: object = (),
    *,
    round_off: bool = False,
    complimentary: bool = False,
    rounding: str = ROUND_HALF_EVEN,
    round_off_rounding: str = ROUND_HALF_UP,
) -> Amounts:
    """Compute the money fields of an order.

    Parameters
    ----------
    line_items:
        Snapshotted order lines; each contributes its total net of its own
        line discount.
    discounts:
        Order level discounts, applied in sequence against the subtotal. A
        discount that would push the running total below zero is clamped.
    taxes:
        A single percentage (reported as one ``GST`` line) or a sequence of
        :class:`TaxRate`. Each tax is charged on ``subtotal - discount`` and
        clamped at zero.
    round_off:
        Round the final amount to a whole unit and store the delta.
    complimentary:
        Keep the subtotal for reporting but zero every other field.
    """

    items = list(line_items)
    discounts = list(discounts)
    rates = _tax_rates(taxes)

    raw_subtotal = sum((item.item_total for item in items), ZERO)
    subtotal = quantize(raw_subtotal, rounding)

    if complimentary:
        return Amounts(
            subtotal=subtotal,
            total_discount=ZERO,
            total_tax=ZERO,
            total=ZERO,
            round_off=ZERO,
            final_amount=ZERO,
            discounts=tuple(
                Discount(d.kind, d.value, ZERO, d.reason, d.applied_by)
                for d in discounts
            ),
            taxes=tuple(Tax(r.name, r.rate, ZERO) for r in rates),
        )

    raw_discounts: list[Decimal] = []
    remaining = raw_subtotal
    for d in discounts:
        amount = discount_for(d.kind, to_decimal(d.value), raw_subtotal)
        amount = min(amount, remaining)
        remaining -= amount
        raw_discounts.append(amount)
    raw_discount = raw_subtotal - remaining
    total_discount = quantize(raw_discount, rounding)

    taxable = raw_subtotal - raw_discount
    raw_taxes = [max(taxable * r.rate / HUNDRED, ZERO) for r in rates]
    total_tax = quantize(sum(raw_taxes, ZERO), rounding)

    total = subtotal - total_discount + total_tax
    if round_off:
        final_amount = total.quantize(UNIT, rounding=round_off_rounding)
        final_amount = quantize(final_amount)
    else:
        final_amount = total
    delta = final_amount - total

    discount_amounts = _allocate(raw_discounts, total_discount, rounding)
    tax_amounts = _allocate(raw_taxes, total_tax, rounding)

    return Amounts(
        subtotal=subtotal,
        total_discount=total_discount,
        total_tax=total_tax,
        total=total,
        round_off=delta,
        final_amount=final_amount,
        discounts=tuple(
            Discount(d.kind, to_decimal(d.value), amt, d.reason, d.applied_by)
            for d, amt in zip(discounts, discount_amounts)
        ),
        taxes=tuple(
            Tax(r.name, r.rate, amt) for r, amt in zip(rates, tax_amounts)
        ),
    )


@dataclass(frozen=True)
class PricingPolicy:
    """Tax and rounding configuration applied to every order."""

    taxes: tuple[TaxRate, ...] = field(default_factory=tuple)
    round_off: bool = True
    rounding: str = ROUND_HALF_EVEN
    round_off_rounding: str = ROUND_HALF_UP

    @classmethod
    def from_settings(cls, settings) -> "PricingPolicy":
        rate = to_decimal(settings.tax_rate)
        taxes: list[TaxRate] = []
        if rate:
            if settings.gst_split:
                half = rate / 2
                taxes.append(TaxRate("CGST", half))
                taxes.append(TaxRate("SGST", half))
            else:
                taxes.append(TaxRate(DEFAULT_TAX_NAME, rate))
        service = to_decimal(settings.service_charge_rate)
        if service > ZERO:
            taxes.append(TaxRate("Service Charge", service))
        return cls(
            taxes=tuple(taxes),
            round_off=settings.round_off_bills,
            rounding=rounding_mode(settings.money_rounding),
            round_off_rounding=rounding_mode(settings.round_off_rounding),
        )

    def price(
        self,
        line_items: Iterable[LineItem],
        discounts: Iterable[Discount] = (),
        *,
        complimentary: bool = False,
    ) -> Amounts:
        return compute_totals(
            line_items,
            discounts,
            self.taxes,
            round_off=self.round_off,
            complimentary=complimentary,
            rounding=self.rounding,
            round_off_rounding=self.round_off_rounding,
        )

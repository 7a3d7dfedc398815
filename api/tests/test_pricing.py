from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from types import SimpleNamespace

import pytest

from api.app.domain.values import Discount, DiscountKind, LineItem, TaxRate
from api.app.pricing.calculator import PricingPolicy, compute_totals
from api.app.pricing.money import (
    from_minor_units,
    quantize,
    rounding_mode,
    to_minor_units,
)

GST = (TaxRate("GST", Decimal("18")),)


def _line(price, qty=1, **kw) -> LineItem:
    return LineItem(product_id="p", name="Item", unit_price=Decimal(price), qty=qty, **kw)


def test_burger_pair_with_gst():
    amounts = compute_totals([_line("100", 2)], taxes=GST, round_off=True)
    assert amounts.subtotal == Decimal("200.00")
    assert amounts.total_tax == Decimal("36.00")
    assert amounts.final_amount == Decimal("236.00")
    assert amounts.round_off == Decimal("0.00")
    assert amounts.is_consistent()


def test_percentage_discount_reduces_taxable_amount():
    amounts = compute_totals(
        [_line("100", 2)],
        [Discount(DiscountKind.PERCENTAGE, Decimal("10"))],
        GST,
        round_off=True,
    )
    assert amounts.total_discount == Decimal("20.00")
    assert amounts.total_tax == Decimal("32.40")
    assert amounts.total == Decimal("212.40")
    assert amounts.final_amount == Decimal("212.00")
    assert amounts.round_off == Decimal("-0.40")
    assert amounts.discounts[0].amount == Decimal("20.00")
    assert amounts.is_consistent()


def test_round_off_disabled_keeps_paise():
    amounts = compute_totals([_line("12.50", 3)], taxes=GST)
    assert amounts.total_tax == Decimal("6.75")
    assert amounts.final_amount == Decimal("44.25")
    assert amounts.round_off == Decimal("0")


def test_round_off_mode_is_configurable():
    half_up = compute_totals([_line("12.50")], round_off=True)
    bankers = compute_totals(
        [_line("12.50")], round_off=True, round_off_rounding=ROUND_HALF_EVEN
    )
    assert half_up.final_amount == Decimal("13.00")
    assert half_up.round_off == Decimal("0.50")
    assert bankers.final_amount == Decimal("12.00")
    assert bankers.round_off == Decimal("-0.50")


def test_fixed_discount_is_clamped_to_subtotal():
    amounts = compute_totals(
        [_line("100", 2)], [Discount(DiscountKind.FIXED, Decimal("500"))], GST
    )
    assert amounts.total_discount == Decimal("200.00")
    assert amounts.total_tax == Decimal("0.00")
    assert amounts.final_amount == Decimal("0.00")


def test_discounts_apply_in_sequence_against_what_is_left():
    amounts = compute_totals(
        [_line("100", 2)],
        [
            Discount(DiscountKind.FIXED, Decimal("150")),
            Discount(DiscountKind.FIXED, Decimal("100")),
        ],
    )
    assert [d.amount for d in amounts.discounts] == [Decimal("150.00"), Decimal("50.00")]
    assert amounts.final_amount == Decimal("0.00")


def test_line_discount_counts_towards_subtotal():
    line = _line("100", 2, discount_kind=DiscountKind.PERCENTAGE, discount_value=Decimal("10"))
    assert line.item_total == Decimal("180")
    amounts = compute_totals([line, _line("50")])
    assert amounts.subtotal == Decimal("230.00")


def test_split_tax_amounts_add_up_to_total_tax():
    rates = (TaxRate("CGST", Decimal("9")), TaxRate("SGST", Decimal("9")))
    amounts = compute_totals([_line("12.50", 3)], taxes=rates)
    assert amounts.total_tax == Decimal("6.75")
    assert sum(t.amount for t in amounts.taxes) == amounts.total_tax
    assert {t.name for t in amounts.taxes} == {"CGST", "SGST"}


def test_complimentary_keeps_subtotal_only():
    amounts = compute_totals(
        [_line("100", 2)],
        [Discount(DiscountKind.PERCENTAGE, Decimal("10"))],
        GST,
        round_off=True,
        complimentary=True,
    )
    assert amounts.subtotal == Decimal("200.00")
    assert amounts.total_discount == amounts.total_tax == amounts.final_amount == 0
    assert all(t.amount == 0 for t in amounts.taxes)
    assert amounts.is_consistent(complimentary=True)
    assert not amounts.is_consistent()


def test_single_rate_shorthand():
    amounts = compute_totals([_line("100")], taxes=5)
    assert [(t.name, t.amount) for t in amounts.taxes] == [("GST", Decimal("5.00"))]
    assert compute_totals([_line("100")], taxes=0).taxes == ()


def test_policy_from_settings_splits_gst_and_adds_service_charge():
    settings = SimpleNamespace(
        tax_rate=5,
        gst_split=True,
        service_charge_rate=10,
        round_off_bills=False,
        money_rounding="bankers",
        round_off_rounding="half-up",
    )
    policy = PricingPolicy.from_settings(settings)
    assert [(t.name, t.rate) for t in policy.taxes] == [
        ("CGST", Decimal("2.5")),
        ("SGST", Decimal("2.5")),
        ("Service Charge", Decimal("10")),
    ]
    amounts = policy.price([_line("200")])
    assert amounts.total_tax == Decimal("30.00")
    assert amounts.final_amount == Decimal("230.00")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("bankers", ROUND_HALF_EVEN),
        ("half-up", ROUND_HALF_UP),
        ("ROUND_HALF_UP", ROUND_HALF_UP),
        (" Half-Even ", ROUND_HALF_EVEN),
    ],
)
def test_rounding_mode_names(name, expected):
    assert rounding_mode(name) == expected


def test_unknown_rounding_mode():
    with pytest.raises(ValueError):
        rounding_mode("nearest")


def test_quantize_defaults_to_bankers():
    assert quantize(Decimal("0.125")) == Decimal("0.12")
    assert quantize(Decimal("0.135")) == Decimal("0.14")
    assert quantize(Decimal("0.125"), ROUND_HALF_UP) == Decimal("0.13")


def test_minor_units():
    assert to_minor_units(Decimal("236.00")) == 23600
    assert to_minor_units("0.1") == 10
    assert from_minor_units(23650) == Decimal("236.50")

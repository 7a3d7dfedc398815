"""Decimal helpers shared by pricing and payments.

Amounts are handled as :class:`~decimal.Decimal` end to end and only turned
into floats at the JSON boundary.
"""

from __future__ import annotations

from decimal import (
    ROUND_CEILING,
    ROUND_DOWN,
    ROUND_FLOOR,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
    Decimal,
    InvalidOperation,
)

CENT = Decimal("0.01")
UNIT = Decimal("1")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

ROUNDING_MAP = {
    "half-up": ROUND_HALF_UP,
    "half-down": ROUND_HALF_DOWN,
    "bankers": ROUND_HALF_EVEN,
    "half-even": ROUND_HALF_EVEN,
    "up": ROUND_UP,
    "down": ROUND_DOWN,
    "ceil": ROUND_CEILING,
    "floor": ROUND_FLOOR,
}


def to_decimal(value: object) -> Decimal:
    """Convert ``value`` to ``Decimal`` going through ``str`` for floats."""

    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a monetary amount: {value!r}") from exc


def quantize(value: object, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    """Round ``value`` to two decimal places."""

    return to_decimal(value).quantize(CENT, rounding=rounding)


def rounding_mode(name: str) -> str:
    """Map a configured mode (``"half-up"``, ``"bankers"`` ...) to a ``decimal`` constant.

    The ``decimal`` constant names themselves (``ROUND_HALF_UP``) are accepted too.
    """

    key = name.strip()
    if key.upper() in ROUNDING_MAP.values():
        return key.upper()
    try:
        return ROUNDING_MAP[key.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported rounding mode: {name}") from exc


def to_minor_units(amount: object) -> int:
    """Return ``amount`` in paise (or cents), as payment gateways expect."""

    return int((to_decimal(amount) * HUNDRED).quantize(UNIT, rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    return (Decimal(int(minor)) / HUNDRED).quantize(CENT)


def as_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)

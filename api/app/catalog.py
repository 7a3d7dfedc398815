"""Catalog lookups used when snapshotting order lines."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from .domain.errors import ValidationError
from .domain.values import DiscountKind, LineItem
from .pricing.money import ZERO, to_decimal


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    price: Decimal
    available: bool = True


class Catalog(Protocol):
    async def get_item(self, item_id: str) -> CatalogItem | None:
        """Return the current catalog entry for ``item_id``."""


@dataclass(frozen=True)
class LineRequest:
    """What a caller asks for; price and name always come from the catalog."""

    product_id: str
    qty: int = 1
    notes: str = ""
    discount_kind: DiscountKind | None = None
    discount_value: Decimal = ZERO


async def snapshot_lines(catalog: Catalog, requests: Iterable[LineRequest]) -> list[LineItem]:
    """Resolve ``requests`` against ``catalog`` into priced line items."""

    lines: list[LineItem] = []
    for req in requests:
        if req.qty < 1:
            raise ValidationError(
                "quantity must be at least 1", {"product_id": req.product_id}
            )
        item = await catalog.get_item(req.product_id)
        if item is None:
            raise ValidationError(
                "menu item not found", {"product_id": req.product_id}
            )
        if not item.available:
            raise ValidationError(
                f"{item.name} is not available right now", {"product_id": item.id}
            )
        lines.append(
            LineItem(
                product_id=item.id,
                name=item.name,
                unit_price=to_decimal(item.price),
                qty=req.qty,
                discount_kind=req.discount_kind,
                discount_value=to_decimal(req.discount_value),
                notes=req.notes,
            )
        )
    return lines


class MemoryCatalog:
    """Dictionary backed catalog for development and tests."""

    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        self._items = {item.id: item for item in items}

    def put(self, item: CatalogItem) -> None:
        self._items[item.id] = item

    async def get_item(self, item_id: str) -> CatalogItem | None:
        return self._items.get(item_id)

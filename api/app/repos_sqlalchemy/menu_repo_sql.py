"""SQLAlchemy catalog used to snapshot order lines."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..catalog import CatalogItem
from ..models import MenuItem
from ..utils.soft_delete import filter_active, guard_not_deleted, soft_delete


def _to_item(row: MenuItem) -> CatalogItem:
    return CatalogItem(
        id=row.id,
        name=row.name,
        price=Decimal(str(row.price)),
        available=not row.out_of_stock,
    )


class MenuRepoSQL:
    """Catalog backed by the ``menu_items`` table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self.sessionmaker = sessionmaker

    async def get_item(self, item_id: str) -> CatalogItem | None:
        """Return the item; retired items raise instead of returning ``None``."""
        async with self.sessionmaker() as session:
            row = await session.get(MenuItem, item_id)
        if row is None:
            return None
        guard_not_deleted(row, "Menu item is inactive/deleted")
        return _to_item(row)

    async def list_items(self, include_hidden: bool = False) -> list[CatalogItem]:
        stmt = filter_active(select(MenuItem)).order_by(MenuItem.name)
        if not include_hidden:
            stmt = stmt.where(MenuItem.out_of_stock.is_(False))
        async with self.sessionmaker() as session:
            result = await session.execute(stmt)
            return [_to_item(row) for row in result.scalars().all()]

    async def upsert_item(
        self, item_id: str, name: str, price: Decimal, out_of_stock: bool = False
    ) -> CatalogItem:
        async with self.sessionmaker() as session:
            row = await session.get(MenuItem, item_id)
            if row is None:
                row = MenuItem(id=item_id)
                session.add(row)
            row.name = name
            row.price = price
            row.out_of_stock = out_of_stock
            row.deleted_at = None
            await session.commit()
            return _to_item(row)

    async def retire_item(self, item_id: str, now: datetime | None = None) -> None:
        async with self.sessionmaker() as session:
            row = await session.get(MenuItem, item_id)
            if row is not None:
                soft_delete(row, now)
                await session.commit()

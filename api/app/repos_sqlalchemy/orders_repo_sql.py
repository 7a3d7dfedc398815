"""SQLAlchemy-backed order repository.

Status changes, payments and draft edits are single conditional ``UPDATE``
statements on the ``orders`` row (``WHERE status = :expected`` or
``WHERE version = :expected``); a zero rowcount means another writer won and
is reported as :class:`ConflictError` after rereading the row. Child rows
(items, payments, history) are only inserted, never rewritten, except for the
lines of an order that is still a draft.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import models
from ..domain.errors import ConflictError, NotFound, StoreUnavailable, ValidationError
from ..domain.order import Order
from ..domain.order_status import TERMINAL, OrderStatus
from ..domain.values import (
    Amounts,
    Channel,
    Discount,
    DiscountKind,
    LineItem,
    Payment,
    PaymentMethod,
    StatusChange,
    Tax,
)
from ..numbering import CounterUnavailable, OrderNumberGenerator
from ..repos.orders_repo import IntentRecord, OrdersRepo

logger = logging.getLogger("api.orders")

MAX_NUMBER_ATTEMPTS = 5

INCR_DAY = text(
    """
    INSERT INTO order_counters (day, current)
    VALUES (:day, 1)
    ON CONFLICT (day)
    DO UPDATE SET current = order_counters.current + 1
    RETURNING current
    """
)

TIMESTAMP_COLUMNS = (
    "confirmed_at",
    "preparing_at",
    "ready_at",
    "served_at",
    "billed_at",
    "paid_at",
    "cancelled_at",
)


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _money(value) -> Decimal:
    return Decimal(str(value))


def _to_domain(row: models.Order) -> Order:
    """Rebuild the aggregate from an ``orders`` row and its children."""

    amounts = Amounts(
        subtotal=_money(row.subtotal),
        total_discount=_money(row.total_discount),
        total_tax=_money(row.total_tax),
        total=_money(row.total),
        round_off=_money(row.round_off),
        final_amount=_money(row.final_amount),
        discounts=tuple(
            Discount(
                kind=DiscountKind(d.kind),
                value=_money(d.value),
                amount=_money(d.amount),
                reason=d.reason or "",
                applied_by=d.applied_by,
            )
            for d in row.discounts
        ),
        taxes=tuple(
            Tax(name=t.name, rate=_money(t.rate), amount=_money(t.amount))
            for t in row.taxes
        ),
    )
    return Order(
        id=row.id,
        order_number=row.order_number,
        channel=Channel(row.channel),
        line_items=tuple(
            LineItem(
                product_id=i.product_id,
                name=i.name_snapshot,
                unit_price=_money(i.price_snapshot),
                qty=i.qty,
                discount_kind=DiscountKind(i.discount_kind) if i.discount_kind else None,
                discount_value=_money(i.discount_value),
                notes=i.notes or "",
            )
            for i in row.items
        ),
        amounts=amounts,
        status=OrderStatus(row.status),
        created_at=_aware(row.created_at),
        customer_ref=row.customer_ref,
        table_ref=row.table_ref,
        payments=tuple(
            Payment(
                method=PaymentMethod(p.method),
                amount=_money(p.amount),
                external_reference=p.external_reference,
                applied_by=p.applied_by,
                applied_at=_aware(p.applied_at),
            )
            for p in row.payments
        ),
        is_complimentary=row.is_complimentary,
        kot_printed=row.kot_printed,
        kot_printed_at=_aware(row.kot_printed_at),
        number_degraded=row.number_degraded,
        notes=row.notes or "",
        created_by=row.created_by,
        cancel_reason=row.cancel_reason,
        version=row.version,
        status_history=tuple(
            StatusChange(
                from_status=OrderStatus(h.from_status) if h.from_status else None,
                to_status=OrderStatus(h.to_status),
                actor=h.actor,
                at=_aware(h.at),
                reason=h.reason,
            )
            for h in row.history
        ),
        **{name: _aware(getattr(row, name)) for name in TIMESTAMP_COLUMNS},
    )


def _line_rows(order_id: str, line_items: Sequence[LineItem]) -> list[models.OrderItem]:
    return [
        models.OrderItem(
            order_id=order_id,
            position=pos,
            product_id=item.product_id,
            name_snapshot=item.name,
            price_snapshot=item.unit_price,
            qty=item.qty,
            discount_kind=item.discount_kind.value if item.discount_kind else None,
            discount_value=item.discount_value,
            notes=item.notes,
        )
        for pos, item in enumerate(line_items)
    ]


def _amount_rows(order_id: str, amounts: Amounts) -> list:
    rows: list = [
        models.OrderDiscount(
            order_id=order_id,
            position=pos,
            kind=d.kind.value,
            value=d.value,
            amount=d.amount,
            reason=d.reason,
            applied_by=d.applied_by,
        )
        for pos, d in enumerate(amounts.discounts)
    ]
    rows.extend(
        models.OrderTax(
            order_id=order_id, position=pos, name=t.name, rate=t.rate, amount=t.amount
        )
        for pos, t in enumerate(amounts.taxes)
    )
    return rows


def _amount_values(amounts: Amounts) -> dict:
    return {
        "subtotal": amounts.subtotal,
        "total_discount": amounts.total_discount,
        "total_tax": amounts.total_tax,
        "total": amounts.total,
        "round_off": amounts.round_off,
        "final_amount": amounts.final_amount,
    }


def _payment_row(order_id: str, payment: Payment) -> models.PaymentRow:
    return models.PaymentRow(
        order_id=order_id,
        method=payment.method.value,
        amount=payment.amount,
        external_reference=payment.external_reference,
        applied_by=payment.applied_by,
        applied_at=_utc(payment.applied_at) or datetime.now(timezone.utc),
    )


def _history_row(order_id: str, change: StatusChange) -> models.OrderStatusHistory:
    return models.OrderStatusHistory(
        order_id=order_id,
        from_status=change.from_status.value if change.from_status else None,
        to_status=change.to_status.value,
        actor=change.actor,
        reason=change.reason,
        at=_utc(change.at),
    )


class OrdersRepoSQL(OrdersRepo):
    """Concrete :class:`OrdersRepo` on an async SQLAlchemy engine."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        numbering: OrderNumberGenerator | None = None,
    ) -> None:
        super().__init__(numbering or OrderNumberGenerator())
        self.sessionmaker = sessionmaker

    async def incr_day(self, day: str) -> int:
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(INCR_DAY, {"day": day})
                current = result.scalar_one()
                await session.commit()
        except (OperationalError, InterfaceError, OSError) as exc:
            raise CounterUnavailable(str(exc)) from exc
        return current

    async def create(self, order: Order) -> Order:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = await self.next_order_number(order.created_at)
            stored = replace(
                order,
                id=str(uuid.uuid4()),
                order_number=number.value,
                number_degraded=number.degraded,
            )
            async with self.sessionmaker() as session:
                session.add(
                    models.Order(
                        id=stored.id,
                        order_number=stored.order_number,
                        channel=stored.channel.value,
                        customer_ref=stored.customer_ref,
                        table_ref=stored.table_ref,
                        status=stored.status.value,
                        is_complimentary=stored.is_complimentary,
                        kot_printed=stored.kot_printed,
                        number_degraded=stored.number_degraded,
                        notes=stored.notes,
                        created_by=stored.created_by,
                        total_paid=stored.total_paid,
                        version=stored.version,
                        cancel_reason=stored.cancel_reason,
                        created_at=_utc(stored.created_at),
                        kot_printed_at=_utc(stored.kot_printed_at),
                        **_amount_values(stored.amounts),
                        **{name: _utc(getattr(stored, name)) for name in TIMESTAMP_COLUMNS},
                    )
                )
                try:
                    # parent row first so the children satisfy their foreign keys
                    await session.flush()
                    session.add_all(_line_rows(stored.id, stored.line_items))
                    session.add_all(_amount_rows(stored.id, stored.amounts))
                    session.add_all(_payment_row(stored.id, p) for p in stored.payments)
                    session.add_all(
                        _history_row(stored.id, h) for h in stored.status_history
                    )
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    if "order_number" in str(exc.orig):
                        logger.warning(
                            "order number %s already taken, retrying",
                            number.value,
                            extra={"order_number": number.value},
                        )
                        continue
                    raise ConflictError(stored.id) from exc
            return stored
        raise StoreUnavailable("could not allocate a unique order number")

    async def find_by_id(self, order_id: str) -> Order | None:
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(models.Order)
                .where(models.Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
            return _to_domain(row) if row is not None else None

    async def _reload(self, order_id: str) -> Order:
        order = await self.find_by_id(order_id)
        if order is None:
            raise NotFound(order_id)
        return order

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
        values: dict = {"status": new.value, "version": models.Order.version + 1}
        if timestamp_field:
            values[timestamp_field] = _utc(at)
        if new == OrderStatus.CANCELLED:
            values["cancel_reason"] = reason
        async with self.sessionmaker() as session:
            result = await session.execute(
                update(models.Order)
                .where(models.Order.id == order_id, models.Order.status == expected.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            swapped = result.rowcount == 1
            if swapped:
                session.add(
                    _history_row(order_id, StatusChange(expected, new, actor, at, reason))
                )
                await session.commit()
            else:
                await session.rollback()
        if not swapped:
            current = await self._reload(order_id)
            raise ConflictError(order_id, expected, current.status)
        return await self._reload(order_id)

    async def append_payments(
        self, order_id: str, payments: Sequence[Payment]
    ) -> Order:
        closed = [s.value for s in TERMINAL]
        amount = sum((p.amount for p in payments), Decimal("0"))
        async with self.sessionmaker() as session:
            result = await session.execute(
                update(models.Order)
                .where(models.Order.id == order_id, models.Order.status.not_in(closed))
                .values(
                    total_paid=models.Order.total_paid + amount,
                    version=models.Order.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            accepted = result.rowcount == 1
            if accepted:
                session.add_all(_payment_row(order_id, p) for p in payments)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise ConflictError(order_id) from exc
            else:
                await session.rollback()
        if not accepted:
            current = await self._reload(order_id)
            raise ValidationError(
                "order is closed for payments", {"status": current.status.value}
            )
        return await self._reload(order_id)

    async def mark_kot_printed(self, order_id: str, at: datetime) -> Order:
        async with self.sessionmaker() as session:
            result = await session.execute(
                update(models.Order)
                .where(
                    models.Order.id == order_id,
                    models.Order.kot_printed.is_(False),
                    models.Order.status != OrderStatus.CANCELLED.value,
                )
                .values(
                    kot_printed=True,
                    kot_printed_at=_utc(at),
                    version=models.Order.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            changed = result.rowcount == 1
            await session.commit()
        order = await self._reload(order_id)
        if not changed and not order.kot_printed:
            raise ValidationError("order is cancelled")
        return order

    async def replace_draft_lines(
        self,
        order_id: str,
        expected_version: int,
        line_items: Sequence[LineItem],
        amounts: Amounts,
    ) -> Order:
        async with self.sessionmaker() as session:
            result = await session.execute(
                update(models.Order)
                .where(
                    models.Order.id == order_id,
                    models.Order.status == OrderStatus.DRAFT.value,
                    models.Order.version == expected_version,
                )
                .values(version=models.Order.version + 1, **_amount_values(amounts))
                .execution_options(synchronize_session=False)
            )
            swapped = result.rowcount == 1
            if swapped:
                for table in (models.OrderItem, models.OrderDiscount, models.OrderTax):
                    await session.execute(delete(table).where(table.order_id == order_id))
                session.add_all(_line_rows(order_id, line_items))
                session.add_all(_amount_rows(order_id, amounts))
                await session.commit()
            else:
                await session.rollback()
        if not swapped:
            current = await self._reload(order_id)
            raise ConflictError(order_id, expected_version, current.version)
        return await self._reload(order_id)

    async def list_orders(
        self,
        *,
        customer_ref: str | None = None,
        status: OrderStatus | None = None,
        day: str | None = None,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(models.Order)
        if customer_ref is not None:
            stmt = stmt.where(models.Order.customer_ref == customer_ref)
        if status is not None:
            stmt = stmt.where(models.Order.status == status.value)
        if day is not None:
            stmt = stmt.where(models.Order.order_number.startswith(day))
        stmt = stmt.order_by(
            models.Order.created_at.desc(), models.Order.order_number.desc()
        ).limit(limit)
        async with self.sessionmaker() as session:
            result = await session.execute(stmt)
            return [_to_domain(row) for row in result.scalars().all()]

    async def save_intent(self, intent: IntentRecord) -> None:
        async with self.sessionmaker() as session:
            session.add(
                models.PaymentIntent(
                    gateway_order_id=intent.gateway_order_id,
                    order_id=intent.order_id,
                    amount=intent.amount,
                    currency=intent.currency,
                    created_at=_utc(intent.created_at) or datetime.now(timezone.utc),
                )
            )
            await session.commit()

    async def find_intent(self, gateway_order_id: str) -> IntentRecord | None:
        async with self.sessionmaker() as session:
            row = await session.get(models.PaymentIntent, gateway_order_id)
            if row is None:
                return None
            return IntentRecord(
                gateway_order_id=row.gateway_order_id,
                order_id=row.order_id,
                amount=_money(row.amount),
                currency=row.currency,
                created_at=_aware(row.created_at),
            )

    async def bind_intent(self, gateway_order_id: str, order_id: str) -> IntentRecord:
        async with self.sessionmaker() as session:
            await session.execute(
                update(models.PaymentIntent)
                .where(
                    models.PaymentIntent.gateway_order_id == gateway_order_id,
                    models.PaymentIntent.order_id.is_(None),
                )
                .values(order_id=order_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        intent = await self.find_intent(gateway_order_id)
        if intent is None:
            raise NotFound(gateway_order_id, "payment intent")
        if intent.order_id != order_id:
            raise ConflictError(gateway_order_id)
        return intent

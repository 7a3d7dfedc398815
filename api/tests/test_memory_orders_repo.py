import asyncio
from decimal import Decimal

import pytest

from api.app.domain.errors import ConflictError, NotFound, ValidationError
from api.app.domain.order import new_pos_order
from api.app.domain.order_status import OrderStatus
from api.app.domain.state_machine import apply_transition
from api.app.domain.values import LineItem, Payment, PaymentMethod
from api.app.repos.memory_orders_repo import MemoryOrdersRepo
from api.app.repos.orders_repo import IntentRecord


@pytest.fixture
def draft(policy, now, staff):
    return new_pos_order(
        line_items=[LineItem("burger", "Burger", Decimal("100"), 2)],
        policy=policy,
        at=now,
        created_by=staff.id,
    )


@pytest.fixture
def confirmed(draft, now):
    return apply_transition(draft, OrderStatus.CONFIRMED, at=now, actor="staff-1")


@pytest.mark.anyio
async def test_create_assigns_identity(repo, draft):
    stored = await repo.create(draft)
    assert stored.id
    assert stored.order_number == "202405010001"
    assert not stored.number_degraded
    assert await repo.find_by_id(stored.id) == stored


@pytest.mark.anyio
async def test_create_degrades_when_counter_is_down(repo, draft):
    repo.counter_available = False
    stored = await repo.create(draft)
    assert stored.number_degraded
    assert stored.order_number.startswith("20240501")


@pytest.mark.anyio
async def test_concurrent_status_writes_have_one_winner(repo, confirmed, now):
    stored = await repo.create(confirmed)
    results = await asyncio.gather(
        repo.update_status(
            stored.id, OrderStatus.CONFIRMED, OrderStatus.PREPARING, "preparing_at",
            actor="a", at=now,
        ),
        repo.update_status(
            stored.id, OrderStatus.CONFIRMED, OrderStatus.CANCELLED, "cancelled_at",
            actor="b", at=now, reason="walked out",
        ),
        return_exceptions=True,
    )
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1 and len(losers) == 1
    current = await repo.find_by_id(stored.id)
    assert current.status == winners[0].status
    assert current.version == stored.version + 1


@pytest.mark.anyio
async def test_update_status_unknown_order(repo, now):
    with pytest.raises(NotFound):
        await repo.update_status(
            "missing", OrderStatus.DRAFT, OrderStatus.CONFIRMED, None, actor=None, at=now
        )


@pytest.mark.anyio
async def test_append_payment_rejects_duplicates_and_closed_orders(repo, confirmed, now):
    stored = await repo.create(confirmed)
    payment = Payment(PaymentMethod.ONLINE, Decimal("236.00"), "pay_1", applied_at=now)
    updated = await repo.append_payment(stored.id, payment)
    assert updated.total_paid == Decimal("236.00")
    with pytest.raises(ConflictError):
        await repo.append_payment(stored.id, payment)
    await repo.update_status(
        stored.id, OrderStatus.CONFIRMED, OrderStatus.PAID, "paid_at", actor=None, at=now
    )
    with pytest.raises(ValidationError):
        await repo.append_payment(
            stored.id, Payment(PaymentMethod.CASH, Decimal("1"), applied_at=now)
        )


@pytest.mark.anyio
async def test_mark_kot_printed_is_idempotent(repo, confirmed, now):
    stored = await repo.create(confirmed)
    first = await repo.mark_kot_printed(stored.id, now)
    second = await repo.mark_kot_printed(stored.id, now)
    assert first.kot_printed and second.kot_printed
    assert first.version == second.version == stored.version + 1


@pytest.mark.anyio
async def test_replace_draft_lines_checks_version(repo, draft, policy):
    stored = await repo.create(draft)
    lines = stored.line_items + (LineItem("fries", "Fries", Decimal("50"), 1),)
    amounts = policy.price(lines)
    updated = await repo.replace_draft_lines(stored.id, stored.version, lines, amounts)
    assert updated.amounts.subtotal == Decimal("250.00")
    with pytest.raises(ConflictError):
        await repo.replace_draft_lines(stored.id, stored.version, lines, amounts)


@pytest.mark.anyio
async def test_list_orders_filters(repo, draft, confirmed):
    a = await repo.create(draft)
    b = await repo.create(confirmed)
    assert {o.id for o in await repo.list_orders()} == {a.id, b.id}
    assert [o.id for o in await repo.list_orders(status=OrderStatus.CONFIRMED)] == [b.id]
    assert await repo.list_orders(day="20240502") == []
    assert len(await repo.list_orders(limit=1)) == 1


@pytest.mark.anyio
async def test_intents_round_trip(repo):
    intent = IntentRecord("order_gw_1", None, Decimal("236.00"), "INR")
    await repo.save_intent(intent)
    assert await repo.find_intent("order_gw_1") == intent
    assert await repo.find_intent("nope") is None


@pytest.mark.anyio
async def test_isolated_repos_do_not_share_counters(draft):
    first = await MemoryOrdersRepo().create(draft)
    second = await MemoryOrdersRepo().create(draft)
    assert first.order_number == second.order_number


@pytest.mark.anyio
async def test_append_payments_is_all_or_nothing(repo, confirmed, now):
    stored = await repo.create(confirmed)
    cash = Payment(PaymentMethod.CASH, Decimal("100"), applied_at=now)
    card = Payment(PaymentMethod.CARD, Decimal("136"), "TXN7", applied_at=now)
    with pytest.raises(ConflictError):
        await repo.append_payments(stored.id, [cash, card, card])
    assert (await repo.find_by_id(stored.id)) == stored

    updated = await repo.append_payments(stored.id, [cash, card])
    assert updated.total_paid == Decimal("236")
    assert updated.version == stored.version + 1


@pytest.mark.anyio
async def test_bind_intent_only_once(repo, now):
    await repo.save_intent(IntentRecord("order_gw_9", None, Decimal("50.00"), "INR"))
    assert (await repo.bind_intent("order_gw_9", "order-a")).order_id == "order-a"
    assert (await repo.bind_intent("order_gw_9", "order-a")).order_id == "order-a"
    with pytest.raises(ConflictError):
        await repo.bind_intent("order_gw_9", "order-b")
    with pytest.raises(NotFound):
        await repo.bind_intent("order_missing", "order-a")

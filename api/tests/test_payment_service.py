from decimal import Decimal

import pytest

from api.app.catalog import LineRequest
from api.app.domain.errors import (
    ConflictError,
    InvalidSignature,
    PaymentGatewayUnavailable,
    PermissionDenied,
    ValidationError,
)
from api.app.domain.order_status import OrderStatus
from api.app.domain.values import Channel, Payment, PaymentMethod, Principal
from api.app.events import PAYMENT_REJECTED
from api.app.payments.gateway import DisabledGateway, MockGateway
from api.app.services.payment_service import PaymentService

KITCHEN = [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED, OrderStatus.BILLED]


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway("test_secret")


@pytest.fixture
def payments(service, gateway) -> PaymentService:
    return PaymentService(service, gateway, currency="INR")


async def _order(service, customer, confirm=True):
    return await service.create_checkout_order(
        customer,
        channel=Channel.TAKEAWAY,
        items=[LineRequest("burger", qty=2)],
        confirm=confirm,
    )


@pytest.mark.anyio
async def test_intent_charges_outstanding_balance(service, payments, customer):
    order = await _order(service, customer)
    intent = await payments.create_intent_for_order(order.id, customer)
    assert intent.amount == Decimal("236.00")
    assert intent.order_id == order.id
    assert await service.repo.find_intent(intent.gateway_order_id) == intent


@pytest.mark.anyio
async def test_intent_validation(service, payments, customer):
    with pytest.raises(ValidationError):
        await payments.create_payment_intent(Decimal("0"))
    with pytest.raises(ValidationError):
        await payments.create_payment_intent(Decimal("10"), "USD")
    order = await _order(service, customer)
    with pytest.raises(PermissionDenied):
        await payments.create_intent_for_order(order.id, Principal("cust-2", "customer"))


@pytest.mark.anyio
async def test_gateway_failure_leaves_order_untouched(service, customer):
    order = await _order(service, customer)
    payments = PaymentService(service, DisabledGateway())
    with pytest.raises(PaymentGatewayUnavailable):
        await payments.create_intent_for_order(order.id, customer)
    assert (await service.get(order.id)).version == order.version


@pytest.mark.anyio
async def test_verify_applies_intent_amount(service, payments, gateway, customer, staff):
    order = await _order(service, customer)
    intent = await payments.create_intent_for_order(order.id, customer)
    signature = gateway.sign_payment(intent.gateway_order_id, "pay_100")
    result = await payments.verify_and_apply(
        order.id, intent.gateway_order_id, "pay_100", signature, customer
    )
    assert not result.duplicate
    assert result.order.total_paid == Decimal("236.00")
    assert result.order.payments[0].method == PaymentMethod.ONLINE
    assert result.order.payments[0].external_reference == "pay_100"
    # prepaid checkout orders keep cooking and settle at billing
    assert result.order.status == OrderStatus.CONFIRMED
    for status in KITCHEN:
        order = await service.transition(order.id, status, staff)
    assert order.status == OrderStatus.PAID


@pytest.mark.anyio
async def test_verify_is_idempotent(service, payments, gateway, customer):
    order = await _order(service, customer)
    intent = await payments.create_intent_for_order(order.id, customer)
    signature = gateway.sign_payment(intent.gateway_order_id, "pay_200")
    await payments.verify_and_apply(order.id, intent.gateway_order_id, "pay_200", signature)
    again = await payments.verify_and_apply(
        order.id, intent.gateway_order_id, "pay_200", signature
    )
    assert again.duplicate
    assert len(again.order.payments) == 1


@pytest.mark.anyio
async def test_bad_signature_is_rejected(service, payments, customer):
    rejected = service.events.subscribe(PAYMENT_REJECTED)
    order = await _order(service, customer)
    intent = await payments.create_intent_for_order(order.id, customer)
    with pytest.raises(InvalidSignature):
        await payments.verify_and_apply(
            order.id, intent.gateway_order_id, "pay_300", "deadbeef" * 8
        )
    assert (await service.get(order.id)).payments == ()
    assert (await rejected.get())["reason"] == "invalid_signature"


@pytest.mark.anyio
async def test_intent_bound_to_other_order_is_rejected(service, payments, gateway, customer):
    first = await _order(service, customer)
    second = await _order(service, customer)
    intent = await payments.create_intent_for_order(first.id, customer)
    signature = gateway.sign_payment(intent.gateway_order_id, "pay_400")
    with pytest.raises(ValidationError):
        await payments.verify_and_apply(
            second.id, intent.gateway_order_id, "pay_400", signature
        )
    with pytest.raises(ValidationError):
        await payments.verify_and_apply(
            second.id, "order_unknown", "pay_400", gateway.sign_payment("order_unknown", "pay_400")
        )


@pytest.mark.anyio
async def test_staff_payments_report_change(service, payments, staff):
    order = await service.create_pos_order(staff, items=[LineRequest("burger")])
    result = await payments.record_staff_payments(
        order.id, staff, [Payment(PaymentMethod.CASH, Decimal("200"))]
    )
    assert result.order.status == OrderStatus.PAID
    assert result.change_due == Decimal("82.00")


@pytest.mark.anyio
async def test_paid_order_takes_no_more_payments(service, payments, staff):
    order = await service.create_pos_order(
        staff, items=[LineRequest("burger")], payments=[Payment(PaymentMethod.CASH, Decimal("118"))]
    )
    assert order.status == OrderStatus.PAID
    with pytest.raises(ValidationError):
        await payments.create_intent_for_order(order.id, staff)
    with pytest.raises(ValidationError):
        await payments.record_staff_payments(
            order.id, staff, [Payment(PaymentMethod.CASH, Decimal("1"))]
        )


@pytest.mark.anyio
async def test_free_standing_intent_credits_one_order(service, payments, gateway, staff):
    first = await service.create_pos_order(staff, items=[LineRequest("burger")])
    second = await service.create_pos_order(staff, items=[LineRequest("burger")])
    intent = await payments.create_payment_intent(Decimal("50"))
    assert intent.order_id is None

    await payments.verify_and_apply(
        first.id, intent.gateway_order_id, "pay_1",
        gateway.sign_payment(intent.gateway_order_id, "pay_1"), staff,
    )
    assert (await service.repo.find_intent(intent.gateway_order_id)).order_id == first.id

    with pytest.raises(ValidationError):
        await payments.verify_and_apply(
            second.id, intent.gateway_order_id, "pay_2",
            gateway.sign_payment(intent.gateway_order_id, "pay_2"), staff,
        )
    assert (await service.get(second.id)).payments == ()


@pytest.mark.anyio
async def test_failed_split_bill_records_nothing(service, payments, staff):
    await service.create_pos_order(
        staff,
        items=[LineRequest("burger")],
        payments=[Payment(PaymentMethod.CARD, Decimal("118"), external_reference="TXN1")],
    )
    order = await service.create_pos_order(staff, items=[LineRequest("burger", qty=2)])
    with pytest.raises(ConflictError):
        await payments.record_staff_payments(
            order.id,
            staff,
            [
                Payment(PaymentMethod.CASH, Decimal("100")),
                Payment(PaymentMethod.CARD, Decimal("136"), external_reference="TXN1"),
            ],
        )
    current = await service.get(order.id)
    assert current.payments == ()
    assert current.version == order.version
    assert current.status == OrderStatus.CONFIRMED


@pytest.mark.anyio
async def test_split_bill_settles_once(service, payments, staff):
    order = await service.create_pos_order(staff, items=[LineRequest("burger", qty=2)])
    result = await payments.record_staff_payments(
        order.id,
        staff,
        [
            Payment(PaymentMethod.CASH, Decimal("100")),
            Payment(PaymentMethod.CARD, Decimal("136"), external_reference="TXN2"),
        ],
    )
    assert result.order.status == OrderStatus.PAID
    assert [p.method for p in result.order.payments] == [PaymentMethod.CASH, PaymentMethod.CARD]
    assert [h.to_status for h in result.order.status_history].count(OrderStatus.PAID) == 1
    assert result.change_due == Decimal("0")

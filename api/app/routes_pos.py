"""Staff POS routes: walk-in orders, kitchen/billing transitions and till payments."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from .auth import role_required
from .deps.orders import get_order_service, get_payment_service
from .domain.errors import ValidationError
from .domain.order_status import OrderStatus
from .domain.values import Principal
from .pricing.money import as_float
from .schemas import PaymentsIn, PosOrderIn, StatusIn, serialize_order
from .services.order_service import OrderService
from .services.payment_service import PaymentService
from .utils.responses import ok

router = APIRouter(prefix="/api/pos", tags=["pos"])

staff_only = role_required("admin", "staff")


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(f"unknown status {value!r}") from exc


@router.post("/orders")
async def create_pos_order(
    payload: PosOrderIn,
    principal: Principal = Depends(staff_only),
    service: OrderService = Depends(get_order_service),
) -> dict:
    order = await service.create_pos_order(
        principal,
        items=[line.to_request() for line in payload.items],
        table_ref=payload.table_ref,
        discounts=[d.to_domain() for d in payload.discounts],
        complimentary=payload.complimentary,
        payments=[p.to_domain() for p in payload.payments],
        notes=payload.notes,
        client_total=payload.client_total,
    )
    data = serialize_order(order)
    data["change_due"] = as_float(order.change_due)
    return ok(data)


@router.get("/orders")
async def list_orders(
    status: Optional[str] = None,
    day: Optional[str] = None,
    limit: int = 50,
    principal: Principal = Depends(staff_only),
    service: OrderService = Depends(get_order_service),
) -> dict:
    orders = await service.list_orders(
        principal,
        status=_parse_status(status) if status else None,
        day=day,
        limit=min(max(limit, 1), 200),
    )
    return ok([serialize_order(o) for o in orders])


@router.post("/orders/{order_id}/status")
async def change_status(
    order_id: str,
    payload: StatusIn,
    principal: Principal = Depends(staff_only),
    service: OrderService = Depends(get_order_service),
) -> dict:
    order = await service.transition(
        order_id,
        _parse_status(payload.status),
        principal,
        override=payload.override,
        reason=payload.reason,
    )
    return ok(serialize_order(order))


@router.post("/orders/{order_id}/payments")
async def record_payments(
    order_id: str,
    payload: PaymentsIn,
    principal: Principal = Depends(staff_only),
    payments: PaymentService = Depends(get_payment_service),
) -> dict:
    result = await payments.record_staff_payments(
        order_id, principal, [p.to_domain() for p in payload.payments]
    )
    data = serialize_order(result.order)
    data["change_due"] = as_float(result.change_due)
    return ok(data)


@router.post("/orders/{order_id}/kot")
async def mark_kot_printed(
    order_id: str,
    principal: Principal = Depends(staff_only),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return ok(serialize_order(await service.mark_kot_printed(order_id, principal)))

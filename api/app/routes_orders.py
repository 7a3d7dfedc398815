"""Customer checkout routes.

Customers create and follow their own orders; anything kitchen or billing
related goes through :mod:`routes_pos`.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .auth import get_current_principal
from .deps.orders import get_order_service
from .domain.values import Principal
from .schemas import AddItemsIn, CancelIn, CheckoutOrderIn, serialize_order
from .services.order_service import OrderService
from .utils.responses import ok

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("")
async def create_order(
    payload: CheckoutOrderIn,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    order = await service.create_checkout_order(
        principal,
        channel=payload.channel,
        items=[line.to_request() for line in payload.items],
        table_ref=payload.table_ref,
        notes=payload.notes,
        confirm=payload.confirm,
        client_total=payload.client_total,
    )
    return ok(serialize_order(order))


@router.get("")
async def list_my_orders(
    limit: int = 50,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    orders = await service.list_orders(principal, limit=min(max(limit, 1), 200))
    return ok([serialize_order(o) for o in orders])


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return ok(serialize_order(await service.get(order_id, principal)))


@router.post("/{order_id}/items")
async def add_items(
    order_id: str,
    payload: AddItemsIn,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    order = await service.add_items(
        order_id, principal, [line.to_request() for line in payload.items]
    )
    return ok(serialize_order(order))


@router.post("/{order_id}/confirm")
async def confirm_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return ok(serialize_order(await service.confirm(order_id, principal)))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    payload: CancelIn | None = None,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
) -> dict:
    payload = payload or CancelIn()
    order = await service.cancel(
        order_id, principal, reason=payload.reason, override=payload.override
    )
    return ok(serialize_order(order))

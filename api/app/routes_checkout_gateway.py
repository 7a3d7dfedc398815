"""Online checkout routes: gateway intent creation and payment verification."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .auth import get_current_principal
from .deps.orders import get_payment_service
from .domain.errors import ValidationError
from .domain.values import Principal
from .pricing.money import as_float, to_minor_units
from .schemas import PayCreateIn, PayVerifyIn, serialize_order
from .services.payment_service import PaymentService
from .utils.responses import ok

router = APIRouter(prefix="/api/pay", tags=["payments"])


@router.post("/create")
async def create_payment(
    payload: PayCreateIn,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
) -> dict:
    """Create a gateway order.

    With ``order_id`` the amount is the order's outstanding balance and any
    client amount is ignored; without it staff may create a free-standing
    intent for ``amount``.
    """
    if payload.order_id:
        intent = await service.create_intent_for_order(payload.order_id, principal)
    elif principal.is_staff and payload.amount is not None:
        intent = await service.create_payment_intent(payload.amount, payload.currency)
    else:
        raise ValidationError("order_id required")
    return ok(
        {
            "gateway_order_id": intent.gateway_order_id,
            "order_id": intent.order_id,
            "amount": as_float(intent.amount),
            "amount_minor": to_minor_units(intent.amount),
            "currency": intent.currency,
            "key": service.gateway.key_id,
        }
    )


@router.post("/verify")
async def verify_payment(
    payload: PayVerifyIn,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
) -> dict:
    result = await service.verify_and_apply(
        payload.order_id,
        payload.gateway_order_id,
        payload.gateway_payment_id,
        payload.signature,
        principal,
    )
    return ok(
        {
            "verified": True,
            "duplicate": result.duplicate,
            "order": serialize_order(result.order),
        }
    )

"""Guards and effects of order status transitions.

:func:`check_transition` decides whether ``principal`` may move ``order`` to
``target`` and raises a typed error otherwise; :func:`apply_transition`
computes the resulting aggregate. Neither performs I/O. Persisting the result
is the repository's job and is guarded there by a compare-and-swap on the
current status.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from .errors import InvalidTransition, PermissionDenied, ValidationError
from .order import Order
from .order_status import TIMESTAMP_FIELDS, OrderStatus, can_transition, is_terminal
from .values import Principal, StatusChange

CUSTOMER_TARGETS = frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED})
CUSTOMER_CANCELLABLE = frozenset({OrderStatus.DRAFT, OrderStatus.CONFIRMED})


def _check_actor(
    order: Order, target: OrderStatus, principal: Principal | None, override: bool
) -> None:
    # ``None`` is the system actor used by payment reconciliation.
    if principal is None:
        if target != OrderStatus.PAID:
            raise PermissionDenied("only settlement is automatic")
        return
    if principal.is_staff:
        return
    if override:
        raise PermissionDenied("only staff can override the kitchen lock")
    if target not in CUSTOMER_TARGETS:
        raise PermissionDenied(
            f"customers cannot move orders to {target.value}",
            {"role": principal.role},
        )
    if order.customer_ref != principal.id:
        raise PermissionDenied("order belongs to another customer")
    if target == OrderStatus.CANCELLED and order.status not in CUSTOMER_CANCELLABLE:
        raise PermissionDenied(
            "the kitchen has started on this order, ask the staff to cancel it",
            {"status": order.status.value},
        )


def check_transition(
    order: Order,
    target: OrderStatus,
    principal: Principal | None,
    *,
    override: bool = False,
) -> None:
    """Raise unless ``principal`` may move ``order`` to ``target`` right now."""

    current = order.status
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    _check_actor(order, target, principal, override)

    if target == OrderStatus.CONFIRMED:
        if not order.line_items:
            raise ValidationError("an order needs at least one item")
        if not order.is_pos_order and not order.customer_ref:
            raise ValidationError("a customer is required for this channel")
    elif target == OrderStatus.PAID:
        if current == OrderStatus.CONFIRMED and not (
            order.is_pos_order or order.is_complimentary
        ):
            raise InvalidTransition(
                current, target, "only walk-in or complimentary orders skip the kitchen"
            )
        if not order.is_fully_paid:
            raise InvalidTransition(
                current, target, f"balance of {order.balance_amount} is outstanding"
            )
    elif target == OrderStatus.CANCELLED:
        if order.is_fully_paid:
            raise InvalidTransition(current, target, "fully paid orders need a refund")
        if order.kot_printed and not override:
            raise InvalidTransition(current, target, "kitchen ticket already printed")


def apply_transition(
    order: Order,
    target: OrderStatus,
    *,
    at: datetime,
    actor: str | None,
    reason: str | None = None,
    timestamp_field: str | None = None,
) -> Order:
    """Return ``order`` moved to ``target``.

    The status timestamp is only written the first time the status is
    entered; history only grows.
    """

    changes: dict = {
        "status": target,
        "version": order.version + 1,
        "status_history": order.status_history
        + (StatusChange(order.status, target, actor, at, reason),),
    }
    field = timestamp_field or TIMESTAMP_FIELDS.get(target)
    if field and getattr(order, field) is None:
        changes[field] = at
    if target == OrderStatus.CANCELLED:
        changes["cancel_reason"] = reason
    return replace(order, **changes)


def settles(order: Order) -> bool:
    """``True`` when ``order`` should be moved to ``paid`` without a request.

    Checkout orders paid up front stay in the kitchen flow and settle once
    they reach ``billed``; walk-in and complimentary orders settle straight
    from ``confirmed``.
    """

    if is_terminal(order.status) or not order.is_fully_paid:
        return False
    if order.status == OrderStatus.BILLED:
        return True
    return order.status == OrderStatus.CONFIRMED and (
        order.is_pos_order or order.is_complimentary
    )


__all__ = ["check_transition", "apply_transition", "settles"]

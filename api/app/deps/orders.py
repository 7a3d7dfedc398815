"""Dependency helpers resolving the order services from application state."""

from fastapi import Request

from ..services.order_service import OrderService
from ..services.payment_service import PaymentService


def get_order_service(request: Request) -> OrderService:
    """Return the :class:`OrderService` wired up by ``init_services``."""
    return request.app.state.order_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service

"""Service layer helpers for the API."""

from .order_service import OrderService
from .payment_service import PaymentResult, PaymentService

__all__ = ["OrderService", "PaymentResult", "PaymentService"]

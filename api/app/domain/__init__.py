"""Domain models and helpers."""

from .order_status import TERMINAL, TRANSITIONS, OrderStatus, can_transition

__all__ = ["OrderStatus", "TERMINAL", "TRANSITIONS", "can_transition"]

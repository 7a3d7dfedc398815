"""Typed failures raised by the order engine.

Every error carries a stable ``code`` so HTTP handlers and callers can pattern
match on the kind of failure instead of parsing messages. None of these are
raised after a partial mutation: when one surfaces, the order is exactly as it
was before the call.
"""

from __future__ import annotations

from typing import Any

PAYMENT_FAILED_MESSAGE = "payment failed, no charge was recorded against this order"


class OrderError(Exception):
    """Base class for order engine failures."""

    code = "ORDER_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OrderError):
    """Input rejected before anything was persisted."""

    code = "VALIDATION_ERROR"


class PermissionDenied(OrderError):
    """The principal's role does not allow the requested operation."""

    code = "FORBIDDEN"


class NotFound(OrderError):
    """The referenced order (or payment intent) does not exist."""

    code = "NOT_FOUND"

    def __init__(self, order_id: str, what: str = "order") -> None:
        super().__init__(f"{what} {order_id!r} not found", {"id": order_id})
        self.order_id = order_id


class InvalidTransition(OrderError):
    """The state machine refused to move an order from ``current`` to ``requested``."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: Any, requested: Any, reason: str | None = None) -> None:
        cur = getattr(current, "value", current)
        req = getattr(requested, "value", requested)
        message = f"cannot move order from {cur} to {req}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"current": cur, "requested": req})
        self.current = current
        self.requested = requested
        self.reason = reason


class ConflictError(OrderError):
    """A compare-and-swap write lost against a concurrent writer."""

    code = "CONFLICT"
    retryable = True

    def __init__(self, order_id: str, expected: Any = None, actual: Any = None) -> None:
        exp = getattr(expected, "value", expected)
        act = getattr(actual, "value", actual)
        super().__init__(
            f"order {order_id!r} changed concurrently",
            {"id": order_id, "expected": exp, "actual": act},
        )
        self.order_id = order_id
        self.expected = expected
        self.actual = actual


class Contention(OrderError):
    """Retries on :class:`ConflictError` were exhausted."""

    code = "CONTENTION"
    retryable = True

    def __init__(self, order_id: str, attempts: int) -> None:
        super().__init__(
            f"order {order_id!r} is busy, gave up after {attempts} attempts",
            {"id": order_id, "attempts": attempts},
        )


class InvalidSignature(OrderError):
    """A payment assertion did not match its HMAC signature."""

    code = "INVALID_SIGNATURE"

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(PAYMENT_FAILED_MESSAGE, details)


class PaymentGatewayUnavailable(OrderError):
    """Intent creation failed (misconfiguration, network, gateway error)."""

    code = "PAYMENT_GATEWAY_UNAVAILABLE"
    retryable = True

    def __init__(self, reason: str) -> None:
        super().__init__(PAYMENT_FAILED_MESSAGE, {"reason": reason})
        self.reason = reason


class StoreUnavailable(OrderError):
    """The order store could not issue an order number."""

    code = "STORE_UNAVAILABLE"
    retryable = True


__all__ = [
    "PAYMENT_FAILED_MESSAGE",
    "OrderError",
    "ValidationError",
    "PermissionDenied",
    "NotFound",
    "InvalidTransition",
    "ConflictError",
    "Contention",
    "InvalidSignature",
    "PaymentGatewayUnavailable",
    "StoreUnavailable",
]

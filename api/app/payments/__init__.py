"""Payment gateway clients and signature helpers."""

from .gateway import (
    DisabledGateway,
    GatewayOrder,
    MockGateway,
    PaymentGateway,
    RazorpayGateway,
    build_gateway,
)
from .signature import sign, verify

__all__ = [
    "DisabledGateway",
    "GatewayOrder",
    "MockGateway",
    "PaymentGateway",
    "RazorpayGateway",
    "build_gateway",
    "sign",
    "verify",
]

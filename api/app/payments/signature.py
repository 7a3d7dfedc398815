"""Signing and verification of gateway payment assertions.

The gateway signs ``"<gateway order id>|<gateway payment id>"`` with the
merchant secret using HMAC-SHA256 and hands the hex digest to the client.
"""

from __future__ import annotations

import hashlib
import hmac


def sign(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Return the hex signature for a gateway order/payment pair."""
    msg = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), msg, hashlib.sha256).hexdigest()


def verify(
    secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str
) -> bool:
    """Compare ``signature`` against the expected digest in constant time."""
    if not secret or not signature:
        return False
    expected = sign(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected, signature.strip().lower())
